"""Read-side views for the admin page, plus organization-wide report generation."""

import logging

from .aggregation import GlobalAggregator
from .errors import PreconditionError
from .schemas import DepartmentSummary, DiagnosticSession, GlobalAnalysis
from .store import SessionStore

logger = logging.getLogger("eigen.reports")


def dashboard_data(store: SessionStore, organization_id: str) -> dict:
    """Progress of every department head's most recent session.

    Read-only; safe to poll.
    """
    org = store.get_organization(organization_id)
    rows = []
    for user in store.list_department_heads(organization_id):
        session = store.latest_session_for_user(user.id)
        rows.append({
            "user_id": user.id,
            "name": user.name,
            "email": user.email,
            "department": user.department,
            "invite_status": user.invite_status,
            "session_id": session.id if session else None,
            "status": session.status if session else "not_started",
            "completion_percentage": session.completion_percentage if session else 0,
            "updated_at": session.updated_at if session else None,
        })

    completed = sum(1 for r in rows if r["status"] == "completed")
    return {
        "organization": org,
        "departments": rows,
        "completed_count": completed,
        "total_count": len(rows),
    }


def session_results(
    store: SessionStore,
    session_id: str | None = None,
    user_id: str | None = None,
) -> DiagnosticSession | None:
    """A session by id, or the most recent one for a user."""
    if session_id:
        return store.get_session(session_id)
    if user_id:
        return store.latest_session_for_user(user_id)
    raise PreconditionError("Provide a session id or a user id")


def completed_sessions(store: SessionStore, organization_id: str) -> list[DiagnosticSession]:
    return store.list_sessions(organization_id, status="completed")


def generate_global_report(
    store: SessionStore,
    aggregator: GlobalAggregator,
    organization_id: str,
) -> GlobalAnalysis:
    """Aggregate every completed department and append a new GlobalAnalysis.

    Earlier analyses are kept; the newest one is the current report.
    """
    org = store.get_organization(organization_id)
    # a redone diagnostic supersedes the same user's earlier completed one
    latest: dict[str, DiagnosticSession] = {}
    for session in completed_sessions(store, organization_id):
        latest.setdefault(session.user_id, session)
    sessions = list(latest.values())
    if not sessions:
        raise PreconditionError("No completed diagnostics found")

    departments = [
        DepartmentSummary(
            department=s.department,
            eigenquestion=s.eigenquestion,
            reasoning=s.eigenquestion_reasoning or "",
            workflows=[w.to_prompt() for w in s.workflows],
            total_value=s.total_value,
        )
        for s in sessions
    ]
    logger.info("Generating global report for %s from %d departments", org.name, len(departments))
    report = aggregator.aggregate(departments, org.name)
    return store.add_global_analysis(organization_id, report)


def current_global_analysis(store: SessionStore, organization_id: str) -> GlobalAnalysis | None:
    return store.latest_global_analysis(organization_id)
