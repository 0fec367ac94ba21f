"""ScoringClient: turns one free-text answer into a ScoreRecord."""

import json
import logging

from .config import DEFAULT_CONFIG, DiagnosticConfig
from .policy import describe_rules
from .schemas import QuestionResult, ScoreRecord, parse_record

logger = logging.getLogger("eigen.scoring")


class ScoringClient:
    """Stateless wrapper around the hidden-reasoning LLM call."""

    def __init__(self, llm, config: DiagnosticConfig = DEFAULT_CONFIG):
        self.llm = llm
        self.config = config

    def is_start(self, response: str) -> bool:
        return response == self.config.start_sentinel

    def opening(self) -> QuestionResult:
        """Fixed first question. Same for every industry and department."""
        return QuestionResult(
            question=self.config.opening_question,
            explanation=self.config.opening_explanation,
        )

    def score(
        self,
        response: str,
        context: dict,
        industry: str,
        workflow_count: int,
    ) -> ScoreRecord:
        """Score one answer.

        Args:
            response: Raw answer text, or the start sentinel.
            context: ``department``, ``previousAnswers`` (current workflow
                transcript as question/answer dicts) and ``currentWorkflowDepth``.
            industry: Industry vocabulary, passed through unmodified.
            workflow_count: Number of already-closed workflows.

        Raises:
            ContractViolation: the reply is not a complete, in-range ScoreRecord.
            ExternalCallFailure: the LLM call itself failed.
        """
        if self.is_start(response):
            return ScoreRecord.zeroed()

        user_prompt = self.config.prompts.scoring_user.format(
            industry=industry,
            department=context.get("department") or "unknown",
            workflow_count=workflow_count,
            previous_answers=json.dumps(context.get("previousAnswers") or []),
            depth=context.get("currentWorkflowDepth") or 0,
            response=response,
            policy_rules=describe_rules(self.config.thresholds),
        )
        payload = self.llm.complete(self.config.prompts.scoring_system.format(), user_prompt)
        record = parse_record(ScoreRecord, payload, "scoring")

        logger.info(
            "Scored answer: cascade=%d specificity=%d next=%s",
            record.cascade_score, record.specificity_score, record.next_action.value,
        )
        logger.debug("Scoring reasoning: %s", record.reasoning)
        return record
