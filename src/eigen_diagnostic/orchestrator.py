"""Diagnostic session orchestrator: drives one department's conversation.

Per turn: score the answer, settle the next action, optionally gate a
validation, generate the next question, surface cross-workflow patterns,
then close or finalize the workflow. A turn either completes and returns a
new SessionState, or fails and leaves the committed state untouched apart
from the visible error turn.
"""

import logging

from pydantic import BaseModel

from .aggregation import WorkflowAggregator
from .config import DEFAULT_CONFIG, DiagnosticConfig
from .errors import DiagnosticError, PreconditionError
from .logging_config import setup_logging
from .patterns import PatternDetector
from .policy import decide_next_action, reconcile
from .questions import QuestionGenerator
from .schemas import (
    DirectoryUser,
    NextAction,
    PatternRecord,
    QAPair,
    QuestionResult,
    ScoreRecord,
    ValidationResult,
    Workflow,
    WorkflowAnalysis,
)
from .scoring import ScoringClient
from .state import ChatTurn, SessionState
from .validator import EigenquestionValidator

setup_logging()
logger = logging.getLogger("eigen.orchestrator")


class TurnResult(BaseModel):
    state: SessionState
    question: QuestionResult | None = None
    score: ScoreRecord | None = None
    pattern: PatternRecord | None = None
    validation: ValidationResult | None = None
    analysis: WorkflowAnalysis | None = None
    error: str | None = None

    @property
    def completed(self) -> bool:
        return self.state.is_completed

    def to_payload(self) -> dict:
        """Response body for a turn submission."""
        if self.error is not None:
            return {"error": "Failed to analyze response", "details": self.error}

        payload = {
            "question": self.question.question if self.question else None,
            "explanation": self.question.explanation if self.question else None,
            "scoreSummary": {
                "cascadeScore": self.score.cascade_score,
                "specificityScore": self.score.specificity_score,
                "nextAction": self.score.next_action.value,
                "isHighPriority": self.score.is_high_priority,
            } if self.score else None,
            "completed": self.completed,
        }
        if self.pattern is not None and self.pattern.pattern_detected:
            payload["pattern"] = self.pattern.to_wire()
        if self.analysis is not None:
            payload["eigenquestion"] = self.analysis.eigenquestion
            payload["totalValue"] = self.analysis.total_value
        return payload


class DiagnosticSessionOrchestrator:
    def __init__(
        self,
        llm,
        store,
        config: DiagnosticConfig = DEFAULT_CONFIG,
        evidence=None,
    ):
        self.config = config
        self.store = store
        self.evidence = evidence
        self.scoring = ScoringClient(llm, config)
        self.questions = QuestionGenerator(llm, config)
        self.patterns = PatternDetector(llm, config)
        self.validator = EigenquestionValidator(llm, config)
        self.aggregator = WorkflowAggregator(llm, config)

    # -------------------------------------------------------------------
    # Entry points
    # -------------------------------------------------------------------

    def start(self, user: DirectoryUser, industry: str) -> TurnResult:
        """Create a fresh in-progress session and seed its opening question.

        A redo always comes through here; completed sessions are never reopened.
        """
        session = self.store.create_session(user)
        state = SessionState(
            session_id=session.id,
            organization_id=session.organization_id,
            department=session.department,
            industry=industry,
        )
        return self.run_turn(state, self.config.start_sentinel)

    def submit(self, session_id: str, answer_text: str) -> TurnResult:
        """Turn submission by session id: ``{sessionId, answerText}``."""
        if not session_id:
            raise PreconditionError("Missing sessionId")
        session = self.store.get_session(session_id)
        if session.status == "completed":
            raise PreconditionError(f"Session {session_id} is completed; start a new diagnostic")
        return self.run_turn(self.store.load_state(session_id), answer_text)

    def run_turn(self, state: SessionState, answer: str) -> TurnResult:
        if state.is_completed:
            raise PreconditionError(
                f"Session {state.session_id} is completed; start a new diagnostic"
            )
        if not answer or not answer.strip():
            raise PreconditionError("Missing answer text")

        if self.scoring.is_start(answer):
            result = self._open(state)
        else:
            logger.info(
                "=== Session %s turn: workflow %d, depth %d ===",
                state.session_id, state.workflow_count + 1, state.depth,
            )
            try:
                result = self._advance(state, answer)
            except DiagnosticError as exc:
                logger.error("Turn failed for session %s: %s", state.session_id, exc)
                result = self._failed_turn(state, answer, exc)

        self.store.save_state(result.state)
        return result

    # -------------------------------------------------------------------
    # Turn handling
    # -------------------------------------------------------------------

    def _open(self, state: SessionState) -> TurnResult:
        score = self.scoring.score(self.config.start_sentinel, state.scoring_context(), state.industry, 0)
        opening = self.scoring.opening()
        new = state.model_copy(deep=True)
        if not new.started:
            new.started = True
            new.pending_question = opening.question
            _append_question(new, opening)
        return TurnResult(state=new, question=opening, score=score)

    def _advance(self, state: SessionState, answer: str) -> TurnResult:
        new = state.model_copy(deep=True)
        depth_before = new.depth

        score = self.scoring.score(answer, new.scoring_context(), new.industry, new.workflow_count)
        expected = decide_next_action(
            score.cascade_score, score.specificity_score, depth_before, self.config.thresholds
        )
        action = reconcile(score.next_action, expected, self.config.enforce_policy)

        new.messages.append(ChatTurn(role="user", kind="answer", content=answer))
        new.transcript.append(QAPair(question=new.pending_question or "", answer=answer))
        new.depth += 1
        new.last_cascade_score = score.cascade_score

        validation = None
        probing = None
        if action is NextAction.VALIDATE_EIGENQUESTION and self.config.validate_before_finalize:
            validation = self.validator.validate(new.transcript, new.industry, score.cascade_score)
            if not validation.is_eigenquestion:
                logger.info("Validation gates failed; probing for specifics instead of finalizing")
                action = NextAction.FORCE_SPECIFICITY
                probing = validation.questions

        if action is not score.next_action:
            score = score.model_copy(update={"next_action": action})

        question = self.questions.generate(
            score, new.industry, new.workflow_count, depth_before, answer, probing
        )
        _append_question(new, question)
        new.pending_question = question.question

        pattern = None
        if new.workflow_count >= self.config.min_pattern_workflows and action is not NextAction.CASCADE_PROBE:
            pattern = self._surface_pattern(new)

        analysis = None
        if action is NextAction.NEW_WORKFLOW:
            _close_workflow(new)
            self.store.update_session(
                new.session_id,
                workflows=new.closed_workflows,
                completion_percentage=self._progress(new),
            )
        elif action is NextAction.VALIDATE_EIGENQUESTION:
            _close_workflow(new)
            analysis = self._finalize(new)

        return TurnResult(
            state=new,
            question=question,
            score=score,
            pattern=pattern,
            validation=validation,
            analysis=analysis,
        )

    def _surface_pattern(self, state: SessionState) -> PatternRecord | None:
        """Informational side channel; a failure here never fails the turn."""
        try:
            pattern = self.patterns.detect(state.closed_workflows, state.industry)
        except DiagnosticError as exc:
            logger.warning("Pattern detection skipped: %s", exc)
            return None

        if pattern.pattern_detected and pattern.confidence >= self.config.pattern_notify_confidence:
            logger.info("Pattern surfaced: %s (%d%%)", pattern.pattern_type.value, pattern.confidence)
            state.messages.append(ChatTurn(
                role="assistant",
                kind="pattern",
                content=pattern.description,
                explanation=pattern.recommendation,
            ))
        return pattern

    def _finalize(self, state: SessionState) -> WorkflowAnalysis:
        excerpts = None
        if self.evidence is not None:
            query = " ".join(pair.answer for w in state.closed_workflows for pair in w.transcript)
            excerpts = self.evidence.excerpts(state.session_id, query)

        analysis = self.aggregator.aggregate(state.closed_workflows, state.department, excerpts)
        self.store.update_session(
            state.session_id,
            workflows=state.closed_workflows,
            eigenquestion=analysis.eigenquestion,
            eigenquestion_reasoning=analysis.reasoning,
            total_value=analysis.total_value,
            status="completed",
            completion_percentage=100,
        )

        state.phase = "completed"
        state.pending_question = None
        state.result = analysis
        state.messages.append(ChatTurn(
            role="assistant",
            kind="result",
            content=(
                f'EIGENQUESTION DISCOVERED:\n"{analysis.eigenquestion}"\n\n'
                f"REASONING:\n{analysis.reasoning}"
            ),
        ))
        logger.info("Session %s completed", state.session_id)
        return analysis

    def _failed_turn(self, state: SessionState, answer: str, exc: Exception) -> TurnResult:
        failed = state.model_copy(deep=True)
        failed.messages.append(ChatTurn(role="user", kind="answer", content=answer))
        failed.messages.append(ChatTurn(role="assistant", kind="error", content=f"Error: {exc}"))
        return TurnResult(state=failed, error=str(exc))

    def _progress(self, state: SessionState) -> int:
        return min(self.config.progress_cap, self.config.progress_per_workflow * state.workflow_count)


def _append_question(state: SessionState, question: QuestionResult) -> bool:
    """Append a bot question unless it repeats the immediately preceding bot turn."""
    last = state.last_bot_turn()
    if last is not None and last.content == question.question:
        logger.info("Suppressed repeated question for session %s", state.session_id)
        return False
    state.messages.append(ChatTurn(
        role="assistant",
        kind="question",
        content=question.question,
        explanation=question.explanation,
    ))
    return True


def _close_workflow(state: SessionState) -> None:
    state.closed_workflows.append(Workflow(
        transcript=list(state.transcript),
        cascade_score=state.last_cascade_score,
        depth=state.depth,
    ))
    state.transcript = []
    state.depth = 0
