from typing import List
from fastapi import APIRouter, Depends, Path, Request, status

from schoolcore.client import RemoteApiClient, get_api_client
from schoolcore.middleware.authentication import ApiCredentials, get_api_credentials
from schoolcore.schemas.academics import (
    AcademicSession,
    MigrationRequest,
    SessionCreate,
    SessionDatesResult,
    SessionDatesUpdate,
    SessionIdentityUpdate,
)
from schoolcore.services.progression import ProgressionManager, SessionContext

router = APIRouter()


def get_session_context(
    request: Request,
    credentials: ApiCredentials = Depends(get_api_credentials),
) -> SessionContext:
    """Return the session context owned by the caller's school."""
    return request.app.state.session_contexts.get(credentials.school_id)


async def get_progression_manager(
    client: RemoteApiClient = Depends(get_api_client),
    context: SessionContext = Depends(get_session_context),
) -> ProgressionManager:
    return ProgressionManager(client, context)


@router.get("/academic-session/current", response_model=AcademicSession)
async def get_current_session(manager: ProgressionManager = Depends(get_progression_manager)):
    """
    Get the school's current academic session and term.
    """
    return await manager.get_current_session()


@router.get("/academic-sessions", response_model=List[AcademicSession])
async def get_academic_sessions(manager: ProgressionManager = Depends(get_progression_manager)):
    return await manager.list_sessions()


@router.post("/academic-sessions", response_model=AcademicSession, status_code=status.HTTP_201_CREATED)
async def create_academic_session(
    session_data: SessionCreate,
    manager: ProgressionManager = Depends(get_progression_manager),
):
    """
    Add a new academic session. It stays inactive until the school moves to it.
    """
    return await manager.create_session(session_data.label, session_data.term)


@router.post("/academic-session/advance-term", response_model=AcademicSession)
async def advance_term(manager: ProgressionManager = Depends(get_progression_manager)):
    """
    Move the current session to its next term. Not allowed from the third term.
    """
    return await manager.advance_term()


@router.post("/academic-session/migrate", response_model=AcademicSession)
async def migrate_session(
    migration: MigrationRequest,
    manager: ProgressionManager = Depends(get_progression_manager),
):
    """
    Start the next academic session at its first term.

    Cannot be undone; `confirm` must be true. Passing `target_label` makes
    repeated calls safe.
    """
    return await manager.migrate_to_next_session(
        confirm=migration.confirm,
        target_label=migration.target_label,
    )


@router.put("/academic-session/{session_id}", response_model=AcademicSession)
async def update_academic_session(
    session_data: SessionIdentityUpdate,
    session_id: str = Path(...),
    manager: ProgressionManager = Depends(get_progression_manager),
):
    """
    Correct the session label, term or dates.
    """
    return await manager.update_session_identity(
        session_id,
        session_data.label,
        session_data.term,
        term_ends_on=session_data.current_term_ends_on,
        next_term_begins_on=session_data.next_term_begins_on,
    )


@router.put("/academic-session/{session_id}/dates", response_model=SessionDatesResult)
async def update_session_dates(
    dates: SessionDatesUpdate,
    session_id: str = Path(...),
    manager: ProgressionManager = Depends(get_progression_manager),
):
    return await manager.update_session_dates(
        session_id,
        term_ends_on=dates.current_term_ends_on,
        next_term_begins_on=dates.next_term_begins_on,
    )
