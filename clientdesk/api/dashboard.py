from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from clientdesk.api.deps import get_db, require_staff
from clientdesk.schemas.dashboard import (
    DashboardEventCreate,
    DashboardEventRead,
    DashboardEventUpdate,
    DashboardNoteCreate,
    DashboardNoteRead,
    DashboardNoteUpdate,
)
from clientdesk.services import dashboard as dashboard_service

router = APIRouter(prefix="/dashboard", tags=["dashboard"])


@router.get("/summary")
def get_summary(auth=Depends(require_staff), db: Session = Depends(get_db)):
    return dashboard_service.get_dashboard_summary(db, auth["org_id"], auth["member_id"])


@router.get("/events", response_model=list[DashboardEventRead])
def list_events(
    month: str | None = None, auth=Depends(require_staff), db: Session = Depends(get_db)
):
    return dashboard_service.dashboard_events.list(db, auth["org_id"], month)


@router.post(
    "/events", response_model=DashboardEventRead, status_code=status.HTTP_201_CREATED
)
def create_event(
    payload: DashboardEventCreate, auth=Depends(require_staff), db: Session = Depends(get_db)
):
    return dashboard_service.dashboard_events.create(
        db, auth["org_id"], payload, created_by=auth["member_id"]
    )


@router.patch("/events/{event_id}", response_model=DashboardEventRead)
def update_event(
    event_id: str,
    payload: DashboardEventUpdate,
    auth=Depends(require_staff),
    db: Session = Depends(get_db),
):
    return dashboard_service.dashboard_events.update(
        db, auth["org_id"], event_id, payload, auth["role"]
    )


@router.delete("/events/{event_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_event(event_id: str, auth=Depends(require_staff), db: Session = Depends(get_db)):
    dashboard_service.dashboard_events.delete(db, auth["org_id"], event_id, auth["role"])


@router.get("/notes", response_model=list[DashboardNoteRead])
def list_notes(auth=Depends(require_staff), db: Session = Depends(get_db)):
    return dashboard_service.dashboard_notes.list(db, auth["org_id"])


@router.post("/notes", response_model=DashboardNoteRead, status_code=status.HTTP_201_CREATED)
def create_note(
    payload: DashboardNoteCreate, auth=Depends(require_staff), db: Session = Depends(get_db)
):
    return dashboard_service.dashboard_notes.create(
        db, auth["org_id"], payload, created_by=auth["member_id"]
    )


@router.patch("/notes/{note_id}", response_model=DashboardNoteRead)
def update_note(
    note_id: str,
    payload: DashboardNoteUpdate,
    auth=Depends(require_staff),
    db: Session = Depends(get_db),
):
    return dashboard_service.dashboard_notes.update(db, auth["org_id"], note_id, payload)


@router.delete("/notes/{note_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_note(note_id: str, auth=Depends(require_staff), db: Session = Depends(get_db)):
    dashboard_service.dashboard_notes.delete(db, auth["org_id"], note_id)
