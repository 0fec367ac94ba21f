"""Session store: JSON files in the local workspace, one file per row."""

import json
import logging
import threading
import uuid
from pathlib import Path

from pydantic import BaseModel, ValidationError

from . import config
from .errors import NotFoundError, PreconditionError
from .schemas import (
    DiagnosticSession,
    DirectoryUser,
    GlobalAnalysis,
    GlobalReport,
    Organization,
    utcnow,
)
from .state import SessionState

logger = logging.getLogger("eigen.store")


def _new_id() -> str:
    return uuid.uuid4().hex


def _write_json(path: Path, model: BaseModel) -> None:
    """Atomic write: temp file then rename, so readers never see half a row."""
    path.parent.mkdir(parents=True, exist_ok=True)
    temp_file = path.with_suffix(path.suffix + ".tmp")
    with open(temp_file, "w") as f:
        json.dump(model.model_dump(mode="json"), f, indent=2)
    temp_file.replace(path)


def _read_json(path: Path) -> dict:
    with open(path, "r") as f:
        return json.load(f)


class SessionStore:
    """Rows keyed by id. Updates are by id only; no cross-row locking."""

    def __init__(self, root: Path | None = None):
        self.root = Path(root or config.WORKSPACE_DIR / "store")
        self._lock = threading.Lock()
        for sub in ("sessions", "organizations", "users", "global_analyses"):
            (self.root / sub).mkdir(parents=True, exist_ok=True)
        logger.info("Session store at %s", self.root)

    # -------------------------------------------------------------------
    # Directory
    # -------------------------------------------------------------------

    def create_organization(self, name: str, industry: str = "general") -> Organization:
        org = Organization(id=_new_id(), name=name, industry=industry)
        _write_json(self.root / "organizations" / f"{org.id}.json", org)
        logger.info("Created organization %s (%s)", org.name, org.id)
        return org

    def get_organization(self, organization_id: str) -> Organization:
        path = self.root / "organizations" / f"{organization_id}.json"
        if not organization_id or not path.exists():
            raise NotFoundError(f"Organization not found: {organization_id}")
        return Organization.model_validate(_read_json(path))

    def list_organizations(self) -> list[Organization]:
        orgs = [
            Organization.model_validate(_read_json(p))
            for p in (self.root / "organizations").glob("*.json")
        ]
        return sorted(orgs, key=lambda o: o.created_at)

    def add_user(
        self,
        organization_id: str,
        department: str,
        name: str = "",
        email: str = "",
        role: str = "department_head",
    ) -> DirectoryUser:
        self.get_organization(organization_id)
        user = DirectoryUser(
            id=_new_id(),
            organization_id=organization_id,
            name=name,
            email=email,
            department=department,
            role=role,
        )
        _write_json(self.root / "users" / f"{user.id}.json", user)
        logger.info("Added %s for %s in %s", role, department, organization_id)
        return user

    def get_user(self, user_id: str) -> DirectoryUser:
        path = self.root / "users" / f"{user_id}.json"
        if not user_id or not path.exists():
            raise NotFoundError(f"User not found: {user_id}")
        return DirectoryUser.model_validate(_read_json(path))

    def list_department_heads(self, organization_id: str) -> list[DirectoryUser]:
        users = [
            DirectoryUser.model_validate(_read_json(p))
            for p in sorted((self.root / "users").glob("*.json"))
        ]
        return [u for u in users if u.organization_id == organization_id and u.role == "department_head"]

    def delete_department_head(self, user_id: str) -> int:
        """Remove a department head and all of their sessions. Returns sessions deleted."""
        user_path = self.root / "users" / f"{user_id}.json"
        if not user_id or not user_path.exists():
            raise NotFoundError(f"User not found: {user_id}")

        removed = 0
        for session in self._all_sessions():
            if session.user_id == user_id:
                (self.root / "sessions" / f"{session.id}.json").unlink(missing_ok=True)
                (self.root / "sessions" / f"{session.id}.state.json").unlink(missing_ok=True)
                removed += 1
        user_path.unlink()
        logger.info("Deleted department head %s and %d session(s)", user_id, removed)
        return removed

    # -------------------------------------------------------------------
    # Diagnostic sessions
    # -------------------------------------------------------------------

    def create_session(self, user: DirectoryUser) -> DiagnosticSession:
        session = DiagnosticSession(
            id=_new_id(),
            organization_id=user.organization_id,
            user_id=user.id,
            department=user.department,
        )
        _write_json(self._session_path(session.id), session)
        logger.info("Created session %s for %s", session.id, session.department)
        return session

    def get_session(self, session_id: str) -> DiagnosticSession:
        if not session_id:
            raise PreconditionError("Missing sessionId")
        path = self._session_path(session_id)
        if not path.exists():
            raise NotFoundError(f"Diagnostic session not found: {session_id}")
        return DiagnosticSession.model_validate(_read_json(path))

    def update_session(self, session_id: str, **fields) -> DiagnosticSession:
        """Apply a partial update. Completed sessions are never reopened or edited."""
        with self._lock:
            current = self.get_session(session_id)
            if current.status == "completed":
                raise PreconditionError(f"Session {session_id} is completed; start a new diagnostic")

            data = current.model_dump()
            data.update(fields)
            data["updated_at"] = utcnow()
            try:
                updated = DiagnosticSession.model_validate(data)
            except ValidationError as exc:
                raise PreconditionError(f"Update rejected for session {session_id}: {exc}") from exc

            _write_json(self._session_path(session_id), updated)
        logger.info(
            "Updated session %s: status=%s progress=%d%%",
            session_id, updated.status, updated.completion_percentage,
        )
        return updated

    def list_sessions(self, organization_id: str, status: str | None = None) -> list[DiagnosticSession]:
        """Sessions of one organization, newest first."""
        sessions = [
            s for s in self._all_sessions()
            if s.organization_id == organization_id and (status is None or s.status == status)
        ]
        return sorted(sessions, key=lambda s: s.created_at, reverse=True)

    def latest_session_for_user(self, user_id: str) -> DiagnosticSession | None:
        sessions = [s for s in self._all_sessions() if s.user_id == user_id]
        if not sessions:
            return None
        return max(sessions, key=lambda s: s.created_at)

    def save_state(self, state: SessionState) -> None:
        _write_json(self.root / "sessions" / f"{state.session_id}.state.json", state)

    def load_state(self, session_id: str) -> SessionState:
        path = self.root / "sessions" / f"{session_id}.state.json"
        if not path.exists():
            raise NotFoundError(f"No conversation state for session {session_id}")
        return SessionState.model_validate(_read_json(path))

    def _session_path(self, session_id: str) -> Path:
        return self.root / "sessions" / f"{session_id}.json"

    def _all_sessions(self) -> list[DiagnosticSession]:
        return [
            DiagnosticSession.model_validate(_read_json(p))
            for p in (self.root / "sessions").glob("*.json")
            if not p.name.endswith(".state.json")
        ]

    # -------------------------------------------------------------------
    # Global analyses (append-only)
    # -------------------------------------------------------------------

    def add_global_analysis(self, organization_id: str, report: GlobalReport) -> GlobalAnalysis:
        analysis = GlobalAnalysis(
            id=_new_id(),
            organization_id=organization_id,
            global_eigenquestion=report.global_eigenquestion,
            reasoning=report.reasoning,
            cross_department_patterns=report.cross_department_patterns,
            priority_ranking=report.priority_sequence,
            total_organization_value=report.total_organization_value,
        )
        filename = f"{analysis.generated_at:%Y%m%dT%H%M%S%f}-{analysis.id}.json"
        _write_json(self.root / "global_analyses" / organization_id / filename, analysis)
        logger.info("Stored global analysis %s for %s", analysis.id, organization_id)
        return analysis

    def list_global_analyses(self, organization_id: str) -> list[GlobalAnalysis]:
        """All analyses for an organization, newest first."""
        org_dir = self.root / "global_analyses" / organization_id
        if not org_dir.exists():
            return []
        analyses = [GlobalAnalysis.model_validate(_read_json(p)) for p in org_dir.glob("*.json")]
        return sorted(analyses, key=lambda a: a.generated_at, reverse=True)

    def latest_global_analysis(self, organization_id: str) -> GlobalAnalysis | None:
        analyses = self.list_global_analyses(organization_id)
        return analyses[0] if analyses else None
