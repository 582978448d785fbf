"""Initial schema for organizations, clients, billing and finance.

Revision ID: a1c4e2f7b901
Revises:
Create Date: 2026-10-19

"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = "a1c4e2f7b901"
down_revision = None
branch_labels = None
depends_on = None

UUID = postgresql.UUID(as_uuid=True)


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    ]


def upgrade() -> None:
    member_role = sa.Enum("owner", "staff", "client", name="memberrole")
    client_status = sa.Enum(
        "new", "onboarding", "active", "paused", "closed", "canceled", name="clientstatus"
    )
    client_plan = sa.Enum(
        "gestao", "estrutura", "freelancer", "parceria", "consultoria", "outro",
        name="clientplan",
    )
    client_payment_status = sa.Enum("pending", "confirmed", "late", name="clientpaymentstatus")
    invoice_status = sa.Enum("draft", "open", "paid", "overdue", "void", name="invoicestatus")
    payment_method = sa.Enum(
        "pix", "boleto", "card", "transfer", "cash", "other", name="paymentmethod"
    )
    installment_status = sa.Enum("pending", "confirmed", "late", name="installmentstatus")
    transaction_type = sa.Enum("income", "expense", name="transactiontype")
    transaction_subtype = sa.Enum(
        "invoice_payment", "monthly_fee", "installment", "internal_cost", "other",
        name="transactionsubtype",
    )
    transaction_status = sa.Enum("pending", "confirmed", "cancelled", name="transactionstatus")
    notification_type = sa.Enum(
        "billing_due_soon",
        "billing_overdue",
        "billing_invoice_void",
        "billing_invoice_generated",
        "payment_confirmed",
        "installment_created",
        "installment_confirmed",
        "cost_materialized",
        "client_created",
        "system",
        name="notificationtype",
    )
    notification_priority = sa.Enum(
        "low", "normal", "medium", "high", "urgent", name="notificationpriority"
    )
    metric_type = sa.Enum(
        "revenue", "clients", "invoices", "payments", "conversion", "retention",
        "engagement", "custom",
        name="metrictype",
    )
    time_range = sa.Enum(
        "daily", "weekly", "monthly", "quarterly", "yearly", "custom", name="timerange"
    )
    metric_trend = sa.Enum("up", "down", "stable", name="metrictrend")

    op.create_table(
        "organizations",
        sa.Column("id", UUID, primary_key=True),
        sa.Column("name", sa.String(160), nullable=False),
        sa.Column("cnpj", sa.String(20), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=True),
        *_timestamps(),
    )
    op.create_table(
        "members",
        sa.Column("id", UUID, primary_key=True),
        sa.Column("org_id", UUID, sa.ForeignKey("organizations.id"), nullable=False),
        sa.Column("name", sa.String(160), nullable=False),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("role", member_role, nullable=True),
        sa.Column("api_key_hash", sa.String(64), nullable=True, unique=True),
        sa.Column("is_active", sa.Boolean(), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("org_id", "email", name="uq_members_org_email"),
    )
    op.create_index("ix_members_org_id", "members", ["org_id"])

    op.create_table(
        "clients",
        sa.Column("id", UUID, primary_key=True),
        sa.Column("org_id", UUID, sa.ForeignKey("organizations.id"), nullable=False),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("email", sa.String(255), nullable=True),
        sa.Column("phone", sa.String(40), nullable=True),
        sa.Column("status", client_status, nullable=True),
        sa.Column("plan", client_plan, nullable=True),
        sa.Column("payment_status", client_payment_status, nullable=True),
        sa.Column("contract_start", sa.Date(), nullable=True),
        sa.Column("contract_end", sa.Date(), nullable=True),
        sa.Column("contract_value", sa.Numeric(12, 2), nullable=True),
        sa.Column("payment_day", sa.Integer(), nullable=True),
        sa.Column("is_installment", sa.Boolean(), nullable=True),
        sa.Column("installment_count", sa.Integer(), nullable=True),
        sa.Column("installment_value", sa.Numeric(12, 2), nullable=True),
        sa.Column("installment_payment_days", sa.JSON(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_clients_org_id", "clients", ["org_id"])

    op.create_table(
        "installments",
        sa.Column("id", UUID, primary_key=True),
        sa.Column("client_id", UUID, sa.ForeignKey("clients.id"), nullable=False),
        sa.Column("number", sa.Integer(), nullable=False),
        sa.Column("amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("due_date", sa.Date(), nullable=False),
        sa.Column("status", installment_status, nullable=True),
        sa.Column("paid_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("client_id", "number", name="uq_installments_client_number"),
    )
    op.create_index("ix_installments_client_id", "installments", ["client_id"])

    op.create_table(
        "cost_items",
        sa.Column("id", UUID, primary_key=True),
        sa.Column("org_id", UUID, sa.ForeignKey("organizations.id"), nullable=False),
        sa.Column("name", sa.String(160), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("category", sa.String(80), nullable=True),
        sa.Column("active", sa.Boolean(), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_cost_items_org_id", "cost_items", ["org_id"])

    op.create_table(
        "invoices",
        sa.Column("id", UUID, primary_key=True),
        sa.Column("org_id", UUID, sa.ForeignKey("organizations.id"), nullable=False),
        sa.Column("client_id", UUID, sa.ForeignKey("clients.id"), nullable=False),
        sa.Column("installment_id", UUID, sa.ForeignKey("installments.id"), nullable=True),
        sa.Column("number", sa.String(40), nullable=False),
        sa.Column("status", invoice_status, nullable=True),
        sa.Column("issue_date", sa.Date(), nullable=False),
        sa.Column("due_date", sa.Date(), nullable=False),
        sa.Column("subtotal", sa.Numeric(12, 2), nullable=True),
        sa.Column("discount", sa.Numeric(12, 2), nullable=True),
        sa.Column("tax", sa.Numeric(12, 2), nullable=True),
        sa.Column("total", sa.Numeric(12, 2), nullable=True),
        sa.Column("currency", sa.String(3), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("internal_notes", sa.Text(), nullable=True),
        sa.Column("paid_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("overdue_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("cancelled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_by", UUID, sa.ForeignKey("members.id"), nullable=True),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("org_id", "number", name="uq_invoices_org_number"),
    )
    op.create_index("ix_invoices_org_id", "invoices", ["org_id"])
    op.create_index("ix_invoices_client_id", "invoices", ["client_id"])
    op.create_index("ix_invoices_due_date", "invoices", ["due_date"])

    op.create_table(
        "invoice_items",
        sa.Column("id", UUID, primary_key=True),
        sa.Column("invoice_id", UUID, sa.ForeignKey("invoices.id"), nullable=False),
        sa.Column("description", sa.String(255), nullable=False),
        sa.Column("quantity", sa.Numeric(12, 3), nullable=True),
        sa.Column("unit_amount", sa.Numeric(12, 2), nullable=True),
        sa.Column("total", sa.Numeric(12, 2), nullable=True),
    )

    op.create_table(
        "payments",
        sa.Column("id", UUID, primary_key=True),
        sa.Column("org_id", UUID, sa.ForeignKey("organizations.id"), nullable=False),
        sa.Column("invoice_id", UUID, sa.ForeignKey("invoices.id"), nullable=False),
        sa.Column("client_id", UUID, sa.ForeignKey("clients.id"), nullable=False),
        sa.Column("amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("method", payment_method, nullable=True),
        sa.Column("paid_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_payments_invoice_id", "payments", ["invoice_id"])

    op.create_table(
        "transactions",
        sa.Column("id", UUID, primary_key=True),
        sa.Column("org_id", UUID, sa.ForeignKey("organizations.id"), nullable=False),
        sa.Column("type", transaction_type, nullable=False),
        sa.Column("subtype", transaction_subtype, nullable=True),
        sa.Column("status", transaction_status, nullable=True),
        sa.Column("amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("description", sa.String(255), nullable=False),
        sa.Column("category", sa.String(80), nullable=True),
        sa.Column("transaction_date", sa.Date(), nullable=False),
        sa.Column("client_id", UUID, sa.ForeignKey("clients.id"), nullable=True),
        sa.Column("invoice_id", UUID, sa.ForeignKey("invoices.id"), nullable=True),
        sa.Column("cost_item_id", UUID, sa.ForeignKey("cost_items.id"), nullable=True),
        sa.Column("metadata", sa.JSON(), nullable=True),
        sa.Column("created_by", UUID, sa.ForeignKey("members.id"), nullable=True),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_transactions_org_id", "transactions", ["org_id"])
    op.create_index("ix_transactions_transaction_date", "transactions", ["transaction_date"])

    op.create_table(
        "client_cost_subscriptions",
        sa.Column("id", UUID, primary_key=True),
        sa.Column("org_id", UUID, sa.ForeignKey("organizations.id"), nullable=False),
        sa.Column("client_id", UUID, sa.ForeignKey("clients.id"), nullable=False),
        sa.Column("cost_item_id", UUID, sa.ForeignKey("cost_items.id"), nullable=False),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("end_date", sa.Date(), nullable=True),
        sa.Column("active", sa.Boolean(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("created_by", UUID, sa.ForeignKey("members.id"), nullable=True),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
    )
    op.create_index(
        "ix_client_cost_subscriptions_org_id", "client_cost_subscriptions", ["org_id"]
    )

    op.create_table(
        "notifications",
        sa.Column("id", UUID, primary_key=True),
        sa.Column("org_id", UUID, sa.ForeignKey("organizations.id"), nullable=False),
        sa.Column("member_id", UUID, sa.ForeignKey("members.id"), nullable=False),
        sa.Column("client_id", UUID, sa.ForeignKey("clients.id"), nullable=True),
        sa.Column("invoice_id", UUID, sa.ForeignKey("invoices.id"), nullable=True),
        sa.Column("type", notification_type, nullable=False),
        sa.Column("title", sa.String(200), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("link", sa.String(500), nullable=True),
        sa.Column("priority", notification_priority, nullable=True),
        sa.Column("read", sa.Boolean(), nullable=True),
        sa.Column("read_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_notifications_org_id", "notifications", ["org_id"])
    op.create_index("ix_notifications_member_id", "notifications", ["member_id"])

    op.create_table(
        "dashboard_events",
        sa.Column("id", UUID, primary_key=True),
        sa.Column("org_id", UUID, sa.ForeignKey("organizations.id"), nullable=False),
        sa.Column("title", sa.String(200), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("event_date", sa.Date(), nullable=False),
        sa.Column("color", sa.String(20), nullable=True),
        sa.Column("created_by", UUID, sa.ForeignKey("members.id"), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_dashboard_events_org_id", "dashboard_events", ["org_id"])
    op.create_index("ix_dashboard_events_event_date", "dashboard_events", ["event_date"])

    op.create_table(
        "dashboard_notes",
        sa.Column("id", UUID, primary_key=True),
        sa.Column("org_id", UUID, sa.ForeignKey("organizations.id"), nullable=False),
        sa.Column("title", sa.String(200), nullable=False),
        sa.Column("content", sa.Text(), nullable=True),
        sa.Column("color", sa.String(20), nullable=True),
        sa.Column("position", sa.Integer(), nullable=True),
        sa.Column("created_by", UUID, sa.ForeignKey("members.id"), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_dashboard_notes_org_id", "dashboard_notes", ["org_id"])

    op.create_table(
        "analytics_metrics",
        sa.Column("id", UUID, primary_key=True),
        sa.Column("org_id", UUID, sa.ForeignKey("organizations.id"), nullable=False),
        sa.Column("name", sa.String(160), nullable=False),
        sa.Column("metric_type", metric_type, nullable=False),
        sa.Column("value", sa.Numeric(14, 2), nullable=True),
        sa.Column("unit", sa.String(40), nullable=True),
        sa.Column("trend", metric_trend, nullable=True),
        sa.Column("trend_percentage", sa.Numeric(8, 2), nullable=True),
        sa.Column("previous_value", sa.Numeric(14, 2), nullable=True),
        sa.Column("time_range", time_range, nullable=False),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("end_date", sa.Date(), nullable=False),
        sa.Column("source", sa.String(120), nullable=False),
        sa.Column("tags", sa.JSON(), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("created_by", UUID, sa.ForeignKey("members.id"), nullable=True),
        sa.Column("updated_by", UUID, sa.ForeignKey("members.id"), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_analytics_metrics_org_id", "analytics_metrics", ["org_id"])


def downgrade() -> None:
    for table in (
        "analytics_metrics",
        "dashboard_notes",
        "dashboard_events",
        "notifications",
        "client_cost_subscriptions",
        "transactions",
        "payments",
        "invoice_items",
        "invoices",
        "cost_items",
        "installments",
        "clients",
        "members",
        "organizations",
    ):
        op.drop_table(table)
    bind = op.get_bind()
    for enum_name in (
        "metrictrend",
        "timerange",
        "metrictype",
        "notificationpriority",
        "notificationtype",
        "transactionstatus",
        "transactionsubtype",
        "transactiontype",
        "installmentstatus",
        "paymentmethod",
        "invoicestatus",
        "clientpaymentstatus",
        "clientplan",
        "clientstatus",
        "memberrole",
    ):
        sa.Enum(name=enum_name).drop(bind, checkfirst=True)
