import logging
from collections import OrderedDict
from datetime import date, datetime, timezone
from typing import Any, Dict, List, Optional

from schoolcore.client import RemoteApiClient
from schoolcore.exceptions import (
    CoreError,
    MigrationNotConfirmedError,
    NotProvisionedError,
    RemoteRejection,
    TermProgressionError,
    TransportFailure,
    ValidationFailure,
)
from schoolcore.schemas.academics import AcademicSession, SessionDatesResult
from schoolcore.services.terms import (
    Term,
    next_session_label,
    next_term,
    term_to_number,
    validate_session_label,
)

logger = logging.getLogger(__name__)
audit_logger = logging.getLogger("schoolcore.audit")

CURRENT_SESSION_PATH = "AcademicSession/current-session"
ALL_SESSIONS_PATH = "AcademicSession/get-all-sessions"
CREATE_SESSION_PATH = "AcademicSession/create-session"
UPDATE_SESSION_PATH = "AcademicSession/update-session"
UPDATE_SESSION_DATES_PATH = "AcademicSession/update-session-dates"
NEXT_SESSION_PATH = "AcademicSession/next-session"
NEXT_TERM_PATH = "AcademicSession/next-term"


def _iso(value: Optional[date]) -> Optional[str]:
    return value.isoformat() if value else None


class SessionContext:
    """
    The school's current academic session as last confirmed by the API.

    One context is created per school at application start and handed to
    whichever `ProgressionManager` needs it. Only confirmed reads update it.
    """

    def __init__(self, session: Optional[AcademicSession] = None):
        self._session = session
        self.confirmed_at: Optional[datetime] = datetime.now(timezone.utc) if session else None

    @property
    def session(self) -> Optional[AcademicSession]:
        return self._session

    @property
    def is_provisioned(self) -> bool:
        return self._session is not None

    def confirm(self, session: AcademicSession) -> AcademicSession:
        self._session = session
        self.confirmed_at = datetime.now(timezone.utc)
        return session

    def clear(self) -> None:
        self._session = None
        self.confirmed_at = None


class SessionContextRegistry:
    """
    Session contexts keyed by school, least recently used dropped first.

    A dropped context costs one extra read; mutations re-read before
    acting anyway.
    """

    def __init__(self, max_size: int):
        self.max_size = max_size
        self._contexts: "OrderedDict[str, SessionContext]" = OrderedDict()

    def get(self, school_id: str) -> SessionContext:
        context = self._contexts.get(school_id)
        if context is None:
            context = SessionContext()
            self._contexts[school_id] = context
            while len(self._contexts) > self.max_size:
                self._contexts.popitem(last=False)
        else:
            self._contexts.move_to_end(school_id)
        return context

    def __contains__(self, school_id: str) -> bool:
        return school_id in self._contexts

    def __len__(self) -> int:
        return len(self._contexts)


class ProgressionManager:
    """
    Owns the single current session and term for one school.

    Term and session progression re-read the current session before deciding
    anything, since another worker or screen may have moved it. Every
    mutation is read back afterwards, so the context only ever holds values
    the API confirmed.
    """

    def __init__(self, client: RemoteApiClient, context: Optional[SessionContext] = None):
        self.client = client
        self.context = context if context is not None else SessionContext()

    async def get_current_session(self) -> AcademicSession:
        """
        Fetch the current session and record it in the context.

        Raises:
            NotProvisionedError: If no session has ever been configured
        """
        try:
            data = await self.client.get(CURRENT_SESSION_PATH)
        except RemoteRejection as e:
            if e.status_code == 404:
                self.context.clear()
                raise NotProvisionedError()
            raise

        if not data:
            self.context.clear()
            raise NotProvisionedError()

        session = AcademicSession(**data)
        # Whatever the API returns here is the one current session
        session.is_active = True
        return self.context.confirm(session)

    async def advance_term(self) -> AcademicSession:
        """
        Move the current session to its next term.

        Raises:
            TermProgressionError: If the session is already in its third term
        """
        session = await self.get_current_session()
        expected = next_term(session.current_term)
        if expected is None:
            raise TermProgressionError(
                f"Session {session.current_session} is in its {session.current_term.value} term. "
                f"Move to the next session instead of advancing the term."
            )

        await self.client.post(NEXT_TERM_PATH)
        updated = await self.get_current_session()

        if updated.current_term != expected:
            logger.warning(
                f"Term advance for session {updated.current_session} expected "
                f"{expected.value} but the API reports {updated.current_term.value}"
            )
        logger.info(
            f"Advanced session {updated.current_session} from {session.current_term.value} "
            f"to {updated.current_term.value} term"
        )
        return updated

    async def migrate_to_next_session(self, confirm: bool = False, target_label: Optional[str] = None) -> AcademicSession:
        """
        Start the next academic session at its first term.

        There is no undo, so the caller must pass `confirm=True`. When
        `target_label` is given the call is idempotent: a school already on
        that session is returned unchanged.

        Raises:
            MigrationNotConfirmedError: If `confirm` is not set
            ValidationFailure: If `target_label` is not the next session label
        """
        if not confirm:
            raise MigrationNotConfirmedError()

        previous = await self.get_current_session()
        expected_label = next_session_label(previous.current_session)

        if target_label is not None:
            target_label = validate_session_label(target_label)
            if target_label == previous.current_session:
                logger.info(f"Session {target_label} is already current; skipping migration")
                return previous
            if target_label != expected_label:
                raise ValidationFailure(
                    f"Cannot move from {previous.current_session} to {target_label}; "
                    f"the next session is {expected_label}"
                )

        await self.client.post(NEXT_SESSION_PATH)
        current = await self.get_current_session()

        audit_logger.info(
            f"Session migrated: {previous.current_session} ({previous.current_term.value} term) "
            f"-> {current.current_session} ({current.current_term.value} term) "
            f"[previous_id: {previous.id}] [current_id: {current.id}]"
        )

        if current.current_session == previous.current_session:
            raise CoreError(
                f"Moving to the next session did not start a new session; "
                f"{current.current_session} is still current"
            )
        if current.current_term != Term.FIRST:
            logger.warning(
                f"New session {current.current_session} started in the "
                f"{current.current_term.value} term instead of the first"
            )
        return current

    async def update_session_identity(
        self,
        session_id: str,
        label: str,
        term: Term,
        term_ends_on: Optional[date] = None,
        next_term_begins_on: Optional[date] = None,
    ) -> AcademicSession:
        """Correct a session's label, term or dates without progressing it."""
        payload = {
            "id": session_id,
            "current_Session": validate_session_label(label),
            "current_Term": term_to_number(term),
        }
        if term_ends_on:
            payload["currentTermEndsOn"] = _iso(term_ends_on)
        if next_term_begins_on:
            payload["nextTermBeginsOn"] = _iso(next_term_begins_on)

        await self.client.put(UPDATE_SESSION_PATH, json=payload)
        return await self.get_current_session()

    async def update_session_dates(
        self,
        session_id: str,
        term_ends_on: Optional[date] = None,
        next_term_begins_on: Optional[date] = None,
    ) -> SessionDatesResult:
        """
        Set the term-end and next-term dates. Omitted dates stay as they are.

        Failures are reported in the result rather than raised.
        """
        payload: Dict[str, Any] = {"id": session_id}
        if term_ends_on:
            payload["currentTermEndsOn"] = _iso(term_ends_on)
        if next_term_begins_on:
            payload["nextTermBeginsOn"] = _iso(next_term_begins_on)

        try:
            response = await self.client.put(UPDATE_SESSION_DATES_PATH, json=payload)
        except (RemoteRejection, TransportFailure) as e:
            logger.error(f"Failed to update dates for session {session_id}: {e.message}")
            return SessionDatesResult(success=False, message=e.message)

        message = "Session dates updated successfully"
        if isinstance(response, dict) and response.get("message"):
            message = response["message"]

        try:
            await self.get_current_session()
        except CoreError as e:
            # The dates are saved; only the refresh failed
            logger.warning(f"Dates for session {session_id} saved but the session could not be re-read: {e.message}")
            self.context.clear()
        return SessionDatesResult(success=True, message=message)

    async def create_session(self, label: str, term: Term = Term.FIRST) -> AcademicSession:
        """
        Register a new session. It starts inactive and does not replace the
        current session until activated by a migration.
        """
        payload = {
            "current_Session": validate_session_label(label),
            "current_Term": term_to_number(term),
        }
        data = await self.client.post(CREATE_SESSION_PATH, json=payload)
        if not isinstance(data, dict):
            data = {}

        session = AcademicSession(**{"id": "", "current_Session": payload["current_Session"], **data})
        if "isActive" not in data:
            session.is_active = False
        if "current_Term" not in data:
            session.current_term = term
        logger.info(f"Created academic session {session.current_session}")
        return session

    async def list_sessions(self) -> List[AcademicSession]:
        data = await self.client.get(ALL_SESSIONS_PATH)
        return [AcademicSession(**item) for item in (data if isinstance(data, list) else [])]
