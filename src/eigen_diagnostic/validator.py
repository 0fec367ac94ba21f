"""EigenquestionValidator: three pass/fail gates before a workflow is accepted as final."""

import json
import logging

from .config import DEFAULT_CONFIG, DiagnosticConfig
from .errors import ContractViolation, PreconditionError
from .schemas import GateResults, QAPair, ValidationReply, ValidationResult, parse_record

logger = logging.getLogger("eigen.validator")

MIN_PROBING_QUESTIONS = 2
MAX_PROBING_QUESTIONS = 3


class EigenquestionValidator:
    def __init__(self, llm, config: DiagnosticConfig = DEFAULT_CONFIG):
        self.llm = llm
        self.config = config

    def validate(self, transcript: list[QAPair], industry: str, cascade_score: int | None = None) -> ValidationResult:
        """Score the standalone-value, cascade-effect and root-cause gates.

        Pass/fail is decided here from the returned scores, not taken from the
        model. A failing workflow must come back with probing questions.

        Raises:
            PreconditionError: empty transcript.
            ContractViolation: malformed reply, or a failed gate with fewer than two questions.
        """
        if not transcript:
            raise PreconditionError("Missing workflow data")

        gates = self.config.gates
        system_prompt = self.config.prompts.validation_system.format(
            standalone_gate=gates.standalone_value,
            cascade_gate=gates.cascade_effect,
            root_cause_gate=gates.root_cause,
        )
        workflow = {"responses": [pair.model_dump() for pair in transcript]}
        if cascade_score is not None:
            workflow["cascadeScore"] = cascade_score
        user_prompt = self.config.prompts.validation_user.format(
            industry=industry,
            workflow=json.dumps(workflow, indent=2),
        )

        reply = parse_record(ValidationReply, self.llm.complete(system_prompt, user_prompt), "validation")

        passed = GateResults(
            standalone_value=reply.scores.standalone_value >= gates.standalone_value,
            cascade_effect=reply.scores.cascade_effect >= gates.cascade_effect,
            root_cause=reply.scores.root_cause >= gates.root_cause,
        )
        questions = [q.strip() for q in reply.questions if q.strip()][:MAX_PROBING_QUESTIONS]
        if not passed.all_passed and len(questions) < MIN_PROBING_QUESTIONS:
            raise ContractViolation(
                f"validation: failed gates need {MIN_PROBING_QUESTIONS}-{MAX_PROBING_QUESTIONS} "
                f"probing questions, got {len(questions)}"
            )

        logger.info(
            "Validation gates: standalone=%s cascade=%s root_cause=%s",
            passed.standalone_value, passed.cascade_effect, passed.root_cause,
        )
        return ValidationResult(
            is_eigenquestion=passed.all_passed,
            confidence=reply.confidence,
            reasoning=reply.reasoning,
            scores=reply.scores,
            failure_points=passed,
            questions=questions if not passed.all_passed else [],
            red_flags=reply.red_flags,
        )
