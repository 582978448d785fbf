import os
import uuid
from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from sqlalchemy.sql import sqltypes

# Store UUIDs as strings on SQLite. Must run before any models are imported.
_original_uuid_bind_processor = sqltypes.Uuid.bind_processor
_original_uuid_result_processor = sqltypes.Uuid.result_processor


def _sqlite_uuid_bind_processor(self, dialect):
    if dialect.name == "sqlite":
        def process(value):
            if value is not None:
                if isinstance(value, uuid.UUID):
                    return str(value)
                return str(uuid.UUID(value)) if value else None
            return None
        return process
    return _original_uuid_bind_processor(self, dialect)


def _sqlite_uuid_result_processor(self, dialect, coltype):
    if dialect.name == "sqlite":
        def process(value):
            if value is not None:
                if isinstance(value, uuid.UUID):
                    return value
                return uuid.UUID(value) if value else None
            return None
        return process
    return _original_uuid_result_processor(self, dialect, coltype)


setattr(sqltypes.Uuid, "bind_processor", _sqlite_uuid_bind_processor)
setattr(sqltypes.Uuid, "result_processor", _sqlite_uuid_result_processor)

from clientdesk.db import Base  # noqa: E402
import clientdesk.models  # noqa: E402,F401
from clientdesk.models.client import Client, ClientStatus  # noqa: E402
from clientdesk.models.organization import Member, MemberRole, Organization  # noqa: E402
from clientdesk.services.auth import generate_api_key, hash_api_key  # noqa: E402


@pytest.fixture(scope="session")
def engine():
    database_url = os.getenv("TEST_DATABASE_URL")
    if database_url:
        engine = create_engine(database_url)
    else:
        engine = create_engine(
            "sqlite+pysqlite://",
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )

        # pysqlite needs explicit BEGIN for SAVEPOINT to behave.
        @event.listens_for(engine, "connect")
        def _disable_pysqlite_transactions(dbapi_connection, _connection_record):
            dbapi_connection.isolation_level = None

        @event.listens_for(engine, "begin")
        def _emit_begin(conn):
            conn.exec_driver_sql("BEGIN")

    Base.metadata.create_all(engine)
    return engine


@pytest.fixture()
def db_session(engine):
    connection = engine.connect()
    transaction = connection.begin()
    SessionLocal = sessionmaker(
        bind=connection,
        autoflush=False,
        autocommit=False,
        join_transaction_mode="create_savepoint",
    )
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        transaction.rollback()
        connection.close()


def _unique_email() -> str:
    return f"test-{uuid.uuid4().hex}@example.com"


def _member(db_session, organization, role: MemberRole, name: str):
    raw_key = generate_api_key()
    member = Member(
        org_id=organization.id,
        name=name,
        email=_unique_email(),
        role=role,
        api_key_hash=hash_api_key(raw_key),
    )
    db_session.add(member)
    db_session.commit()
    db_session.refresh(member)
    member.raw_api_key = raw_key
    return member


@pytest.fixture()
def organization(db_session):
    organization = Organization(name="Agência Teste", cnpj="12.345.678/0001-90")
    db_session.add(organization)
    db_session.commit()
    db_session.refresh(organization)
    return organization


@pytest.fixture()
def other_organization(db_session):
    organization = Organization(name="Outra Agência")
    db_session.add(organization)
    db_session.commit()
    db_session.refresh(organization)
    return organization


@pytest.fixture()
def owner(db_session, organization):
    return _member(db_session, organization, MemberRole.owner, "Dona")


@pytest.fixture()
def staff(db_session, organization):
    return _member(db_session, organization, MemberRole.staff, "Equipe")


@pytest.fixture()
def client_member(db_session, organization):
    return _member(db_session, organization, MemberRole.client, "Portal")


@pytest.fixture()
def client(db_session, organization):
    """Active monthly client with a R$ 1.000,00 contract due on day 10."""
    client = Client(
        org_id=organization.id,
        name="Padaria Central",
        email=_unique_email(),
        phone="+55 11 99999-0000",
        status=ClientStatus.active,
        contract_start=date(2024, 1, 1),
        contract_value=Decimal("1000.00"),
        payment_day=10,
    )
    db_session.add(client)
    db_session.commit()
    db_session.refresh(client)
    return client
