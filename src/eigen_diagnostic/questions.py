"""QuestionGenerator: next question plus a short, industry-specific rationale."""

import logging

from .config import DEFAULT_CONFIG, DiagnosticConfig
from .prompts import ACTION_INSTRUCTIONS, PROBING_HINT
from .schemas import QuestionResult, ScoreRecord, parse_record

logger = logging.getLogger("eigen.questions")


class QuestionGenerator:
    def __init__(self, llm, config: DiagnosticConfig = DEFAULT_CONFIG):
        self.llm = llm
        self.config = config

    def generate(
        self,
        score: ScoreRecord,
        industry: str,
        workflow_count: int,
        depth: int,
        user_response: str,
        probing_questions: list[str] | None = None,
    ) -> QuestionResult:
        """Generate the question matching ``score.next_action``.

        Output text is not reproducible across runs; callers should only rely
        on it being a non-empty question.
        """
        probing_hint = ""
        if probing_questions:
            probing_hint = PROBING_HINT.format(
                probing_questions="\n".join(f"- {q}" for q in probing_questions)
            )

        system_prompt = self.config.prompts.question_system.format(industry=industry)
        user_prompt = self.config.prompts.question_user.format(
            cascade_score=score.cascade_score,
            specificity_score=score.specificity_score,
            is_root_cause=str(score.is_root_cause).lower(),
            is_compensating_work=str(score.is_compensating_work).lower(),
            second_order_effects=score.second_order_effects,
            mental_model_mismatch=score.mental_model_mismatch,
            next_action=score.next_action.value,
            reasoning=score.reasoning,
            industry=industry,
            workflow_count=workflow_count,
            depth=depth,
            user_response=user_response,
            probing_hint=probing_hint,
            action_instruction=ACTION_INSTRUCTIONS[score.next_action.value],
        )
        payload = self.llm.complete(system_prompt, user_prompt)
        result = parse_record(QuestionResult, payload, "question generation")
        logger.info("Generated %s question (%d chars)", score.next_action.value, len(result.question))
        return result
