"""PatternDetector: looks for one shared root cause across closed workflows."""

import json
import logging

from .config import DEFAULT_CONFIG, DiagnosticConfig
from .prompts import INDUSTRY_PATTERNS
from .schemas import PatternRecord, Workflow, parse_record

logger = logging.getLogger("eigen.patterns")


class PatternDetector:
    """Informational only. Its output never changes the next-action decision."""

    def __init__(self, llm, config: DiagnosticConfig = DEFAULT_CONFIG):
        self.llm = llm
        self.config = config

    def detect(self, workflows: list[Workflow], industry: str) -> PatternRecord:
        if len(workflows) < self.config.min_pattern_workflows:
            logger.debug("Pattern detection skipped: %d workflow(s)", len(workflows))
            return PatternRecord.none_detected()

        system_prompt = self.config.prompts.pattern_system.format(
            industry=industry,
            industry_patterns=INDUSTRY_PATTERNS.get((industry or "").strip().lower(), ""),
        )
        user_prompt = self.config.prompts.pattern_user.format(
            industry=industry,
            workflow_count=len(workflows),
            workflows="\n".join(
                f"\nWorkflow {i}:\n{json.dumps(w.to_prompt(), indent=2)}\n"
                for i, w in enumerate(workflows)
            ),
        )
        payload = self.llm.complete(system_prompt, user_prompt)
        record = parse_record(PatternRecord, payload, "pattern detection")
        return _clamp_indices(record, len(workflows))


def _clamp_indices(record: PatternRecord, workflow_count: int) -> PatternRecord:
    """Keep affectedWorkflows inside [0, workflow_count), de-duplicated, in order."""
    valid = list(dict.fromkeys(i for i in record.affected_workflows if 0 <= i < workflow_count))
    if len(valid) != len(record.affected_workflows):
        logger.warning(
            "Dropped invalid or repeated workflow indices from %s (have %d workflows)",
            record.affected_workflows, workflow_count,
        )
        return record.model_copy(update={"affected_workflows": valid})
    return record
