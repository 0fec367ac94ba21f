"""Department and organization aggregation.

Both aggregators degrade to a fixed fallback object on any external or
contract failure. The fallback is a valid terminal result, not a retry signal.
"""

import json
import logging

from .config import DEFAULT_CONFIG, DiagnosticConfig
from .errors import ContractViolation, ExternalCallFailure, PreconditionError
from .prompts import EVIDENCE_BLOCK
from .schemas import DepartmentSummary, GlobalReport, Workflow, WorkflowAnalysis, parse_record

logger = logging.getLogger("eigen.aggregation")


def preferred_workflow_index(workflows: list[Workflow]) -> int:
    """Deterministic tie-break among candidates: highest cascade score, then earliest."""
    return min(range(len(workflows)), key=lambda i: (-workflows[i].cascade_score, i))


class WorkflowAggregator:
    """One eigenquestion per department from all of its workflow transcripts."""

    def __init__(self, llm, config: DiagnosticConfig = DEFAULT_CONFIG):
        self.llm = llm
        self.config = config

    def aggregate(
        self,
        workflows: list[Workflow],
        department: str,
        evidence_excerpts: list[str] | None = None,
    ) -> WorkflowAnalysis:
        if not workflows:
            raise PreconditionError("Missing or empty workflows array")

        evidence = ""
        if evidence_excerpts:
            evidence = EVIDENCE_BLOCK.format(
                excerpts="\n\n".join(f"[{i}] {text}" for i, text in enumerate(evidence_excerpts, 1))
            )

        user_prompt = self.config.prompts.workflow_aggregation_user.format(
            department=department,
            workflow_count=len(workflows),
            workflows=json.dumps(
                [{"workflow": i, **w.to_prompt()} for i, w in enumerate(workflows)],
                indent=2,
            ),
            evidence=evidence,
            preferred_workflow=preferred_workflow_index(workflows),
        )

        try:
            payload = self.llm.complete(self.config.prompts.workflow_aggregation_system, user_prompt)
            analysis = parse_record(WorkflowAnalysis, payload, "workflow aggregation")
        except (ExternalCallFailure, ContractViolation) as exc:
            logger.error("Workflow aggregation failed for %s, using fallback: %s", department, exc)
            return WorkflowAnalysis.fallback()

        logger.info(
            "Department %s eigenquestion selected (confidence %d, value %.0f)",
            department, analysis.confidence, analysis.total_value,
        )
        return analysis


class GlobalAggregator:
    """Organization-wide eigenquestion and priority sequence across departments."""

    def __init__(self, llm, config: DiagnosticConfig = DEFAULT_CONFIG):
        self.llm = llm
        self.config = config

    def aggregate(self, departments: list[DepartmentSummary], organization: str) -> GlobalReport:
        if not departments:
            raise PreconditionError("No completed diagnostics found")

        user_prompt = self.config.prompts.global_aggregation_user.format(
            organization=organization,
            department_analyses=json.dumps([d.to_wire() for d in departments], indent=2),
        )

        try:
            payload = self.llm.complete(self.config.prompts.global_aggregation_system, user_prompt)
            report = parse_record(GlobalReport, payload, "global aggregation")
        except (ExternalCallFailure, ContractViolation) as exc:
            logger.error("Global aggregation failed for %s, using fallback: %s", organization, exc)
            return GlobalReport.fallback()

        logger.info(
            "Global report for %s: %d departments ranked, total value %.0f",
            organization, len(report.priority_sequence), report.total_organization_value,
        )
        return report
