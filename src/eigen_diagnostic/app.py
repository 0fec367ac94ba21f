import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

import logging
import streamlit as st
from dotenv import load_dotenv

load_dotenv()

from eigen_diagnostic import config
from eigen_diagnostic.aggregation import GlobalAggregator
from eigen_diagnostic.errors import DiagnosticError, EvidenceConversionError
from eigen_diagnostic.evidence import EvidenceIndex, create_chroma_client, create_voyage_client
from eigen_diagnostic.llm import AnthropicLanguageModel
from eigen_diagnostic.orchestrator import DiagnosticSessionOrchestrator
from eigen_diagnostic.reports import (
    completed_sessions,
    current_global_analysis,
    dashboard_data,
    generate_global_report,
)
from eigen_diagnostic.store import SessionStore

logger = logging.getLogger("eigen.app")

INDUSTRIES = ["general", "automotive", "logistics"]


@st.cache_resource
def get_store():
    return SessionStore()


@st.cache_resource
def get_llm():
    return AnthropicLanguageModel.from_config(config.DEFAULT_CONFIG)


@st.cache_resource
def get_chroma_client(vectordb_path: str):
    """Cached ChromaDB client singleton; avoids SQLite thread-lock errors."""
    return create_chroma_client(vectordb_path)


@st.cache_resource
def get_voyage_client(api_key: str):
    return create_voyage_client(api_key)


def get_evidence_index() -> EvidenceIndex | None:
    try:
        chroma = get_chroma_client(str(config.WORKSPACE_DIR / "vectordb"))
        voyage = get_voyage_client(config.VOYAGE_API_KEY) if config.VOYAGE_API_KEY else None
        return EvidenceIndex(chroma, voyage)
    except Exception as e:
        logger.warning("Evidence index unavailable: %s", e)
        return None


def get_orchestrator() -> DiagnosticSessionOrchestrator:
    return DiagnosticSessionOrchestrator(
        get_llm(), get_store(), config.DEFAULT_CONFIG, evidence=get_evidence_index()
    )


# ---------------------------------------------------------------------------
# Rendering helpers
# ---------------------------------------------------------------------------

def _render_turn(turn) -> None:
    with st.chat_message(turn.role):
        if turn.kind == "error":
            st.error(turn.content)
        elif turn.kind == "pattern":
            st.info(f"**Pattern detected:** {turn.content}")
            if turn.explanation:
                st.caption(turn.explanation)
        elif turn.kind == "result":
            st.success(turn.content)
        else:
            st.markdown(turn.content)
            if turn.explanation:
                st.caption(turn.explanation)


def _process_uploaded_file(session_id: str, uploaded_file) -> None:
    """Save first, then ingest; a file that fails conversion stays on disk."""
    uploads_dir = config.WORKSPACE_DIR / "uploads" / session_id
    uploads_dir.mkdir(parents=True, exist_ok=True)
    file_path = uploads_dir / uploaded_file.name
    file_path.write_bytes(uploaded_file.read())

    index = get_evidence_index()
    if index is None:
        return
    try:
        count = index.ingest_file(session_id, file_path)
    except EvidenceConversionError as e:
        logger.warning("Failed to parse %s: %s", uploaded_file.name, e)
        st.error(f"'{uploaded_file.name}' could not be parsed and won't be used as evidence.")
        return
    st.toast(f"{uploaded_file.name}: {count} excerpts indexed")


# ---------------------------------------------------------------------------
# Pages
# ---------------------------------------------------------------------------

def department_page(org) -> None:
    store = get_store()
    heads = store.list_department_heads(org.id)
    if not heads:
        st.info("No departments yet. Add one on the Admin page.")
        return

    user = st.selectbox("Department", heads, format_func=lambda u: f"{u.department} ({u.name or u.email or u.id[:6]})")
    industry = st.selectbox("Industry", INDUSTRIES, index=INDUSTRIES.index(org.industry) if org.industry in INDUSTRIES else 0)

    session = store.latest_session_for_user(user.id)
    if session is None or st.button("Start a new diagnostic", disabled=session is None or session.status != "completed"):
        with st.spinner("Starting diagnostic..."):
            get_orchestrator().start(user, industry)
        st.rerun()

    state = store.load_state(session.id)
    st.progress(session.completion_percentage / 100, text=f"{session.completion_percentage}% complete")

    for turn in state.messages:
        _render_turn(turn)

    if state.is_completed:
        st.subheader("Eigenquestion")
        st.markdown(f"> {session.eigenquestion}")
        st.write(session.eigenquestion_reasoning)
        st.metric("Estimated value", f"${session.total_value:,.0f}")
        return

    with st.sidebar:
        st.subheader("Evidence")
        if not config.VOYAGE_API_KEY:
            st.warning("Set VOYAGE_API_KEY in .env to attach evidence files.")
        elif (index := get_evidence_index()) is not None:
            for i, filename in enumerate(index.list_files(session.id)):
                col1, col2 = st.columns([4, 1])
                col1.caption(filename)
                if col2.button("X", key=f"delete_evidence_{i}"):
                    index.remove_file(session.id, filename)
                    st.rerun()

            uploaded_file = st.file_uploader("Upload evidence", type=["docx", "md", "txt"], key="evidence_uploader")
            # The uploader keeps its file across reruns; ingest each upload once
            processed = st.session_state.setdefault("processed_uploads", set())
            if uploaded_file and (session.id, uploaded_file.file_id) not in processed:
                with st.spinner(f"Processing {uploaded_file.name}..."):
                    _process_uploaded_file(session.id, uploaded_file)
                processed.add((session.id, uploaded_file.file_id))
                st.rerun()

    pending = st.session_state.get("pending_answer")
    if answer := st.chat_input("Describe how this workflow actually runs...", disabled=pending is not None):
        st.session_state.pending_answer = answer
        st.rerun()

    if pending is not None:
        with st.chat_message("user"):
            st.markdown(pending)
        with st.chat_message("assistant"):
            with st.spinner("Analyzing..."):
                try:
                    get_orchestrator().run_turn(state, pending)
                except DiagnosticError as e:
                    st.error(str(e))
        st.session_state.pending_answer = None
        st.rerun()


def admin_page(org) -> None:
    store = get_store()

    col1, col2 = st.columns([4, 1])
    with col1:
        st.subheader("Department progress")
    with col2:
        if st.button("Refresh", use_container_width=True):
            st.rerun()

    data = dashboard_data(store, org.id)
    st.metric("Completed", f"{data['completed_count']} / {data['total_count']}")
    for row in data["departments"]:
        c1, c2, c3 = st.columns([3, 3, 1])
        c1.write(f"**{row['department']}**  \n{row['name'] or row['email']}")
        c2.progress(row["completion_percentage"] / 100, text=row["status"].replace("_", " "))
        if c3.button("Remove", key=f"remove_{row['user_id']}"):
            store.delete_department_head(row["user_id"])
            st.rerun()

    with st.expander("Add department"):
        department = st.text_input("Department name")
        name = st.text_input("Department head")
        email = st.text_input("Email")
        if st.button("Add", disabled=not department.strip()):
            store.add_user(org.id, department.strip(), name=name.strip(), email=email.strip())
            st.rerun()

    st.divider()
    st.subheader("Completed diagnostics")
    sessions = completed_sessions(store, org.id)
    if not sessions:
        st.caption("No completed diagnostics yet.")
    for s in sessions:
        with st.expander(f"{s.department}: ${s.total_value:,.0f}"):
            st.markdown(f"> {s.eigenquestion}")
            st.write(s.eigenquestion_reasoning)

    st.divider()
    st.subheader("Organization report")
    latest = current_global_analysis(store, org.id)
    label = "Regenerate global report" if latest else "Generate global report"
    if st.button(label, disabled=not sessions):
        with st.spinner("Synthesizing across departments..."):
            try:
                generate_global_report(store, GlobalAggregator(get_llm(), config.DEFAULT_CONFIG), org.id)
            except DiagnosticError as e:
                st.error(str(e))
        st.rerun()

    if latest:
        st.caption(f"Generated {latest.generated_at:%Y-%m-%d %H:%M} UTC")
        st.markdown(f"### {latest.global_eigenquestion}")
        st.write(latest.reasoning)
        st.metric("Total organization value", f"${latest.total_organization_value:,.0f}")
        if latest.cross_department_patterns:
            st.markdown("**Cross-department patterns**")
            for p in latest.cross_department_patterns:
                st.markdown(f"- {p}")
        if latest.priority_ranking:
            st.markdown("**Priority sequence**")
            st.table([
                {"Department": p.department, "Workflow": p.workflow, "Value": f"${p.value:,.0f}"}
                for p in latest.priority_ranking
            ])


# ---------------------------------------------------------------------------
# Layout
# ---------------------------------------------------------------------------

st.set_page_config(page_title="Eigen", layout="wide")
logger.info("App startup")

store = get_store()

with st.sidebar:
    st.title("Eigen")

    orgs = store.list_organizations()
    org = st.selectbox("Organization", orgs, format_func=lambda o: o.name) if orgs else None

    with st.expander("New organization", expanded=not orgs):
        org_name = st.text_input("Name", key="new_org_name")
        org_industry = st.selectbox("Industry", INDUSTRIES, key="new_org_industry")
        if st.button("Create", disabled=not org_name.strip()):
            store.create_organization(org_name.strip(), org_industry)
            st.rerun()

    st.divider()
    page = st.radio("View", ["Department diagnostic", "Admin"])

if org is None:
    st.title("Eigen")
    st.info("Create an organization to begin.")
elif page == "Admin":
    st.title(f"{org.name}: Admin")
    admin_page(org)
else:
    st.title(f"{org.name}: Diagnostic")
    department_page(org)
