"""Typed records for everything that crosses the LLM boundary or the session store.

LLM replies use camelCase keys; the records expose snake_case attributes and
accept either spelling. ``parse_record`` is the single validation gate: a reply
that does not fit its record is a ContractViolation, never a silent default.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, Literal

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    StrictBool,
    ValidationError,
    field_validator,
    model_validator,
)
from pydantic.alias_generators import to_camel

from .errors import ContractViolation

Score = Annotated[int, Field(strict=True, ge=0, le=10)]
Percent = Annotated[int, Field(ge=0, le=100)]
Money = Annotated[float, Field(ge=0)]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class NextAction(str, Enum):
    CASCADE_PROBE = "CASCADE_PROBE"
    FORCE_SPECIFICITY = "FORCE_SPECIFICITY"
    VALIDATE_EIGENQUESTION = "VALIDATE_EIGENQUESTION"
    MOVE_ON = "MOVE_ON"
    NEW_WORKFLOW = "NEW_WORKFLOW"


class PatternType(str, Enum):
    UPSTREAM_FAILURE = "upstream_failure"
    INFORMATION_GAP = "information_gap"
    HANDOFF_FAILURE = "handoff_failure"
    REACTIVE_TRACKING = "reactive_tracking"
    NONE = "none"


class LLMRecord(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
        extra="ignore",
    )

    def to_wire(self) -> dict:
        """camelCase dict, the shape the LLM produced and the UI consumes."""
        return self.model_dump(mode="json", by_alias=True)


def parse_record(record_cls: type[BaseModel], payload, what: str):
    """Validate a decoded LLM reply against ``record_cls``.

    Raises:
        ContractViolation: payload is not an object or any field is missing/out of range.
    """
    if not isinstance(payload, dict):
        raise ContractViolation(f"{what}: expected a JSON object, got {type(payload).__name__}")
    try:
        return record_cls.model_validate(payload)
    except ValidationError as exc:
        fields = ", ".join(".".join(str(p) for p in err["loc"]) or "<root>" for err in exc.errors())
        raise ContractViolation(f"{what}: reply violates schema ({fields})") from exc


# ---------------------------------------------------------------------------
# Per-turn records
# ---------------------------------------------------------------------------

class ScoreRecord(LLMRecord):
    """Scoring of one free-text answer. ``reasoning`` is internal and never shown to users."""

    cascade_score: Score
    specificity_score: Score
    is_root_cause: StrictBool
    is_compensating_work: StrictBool
    second_order_effects: str
    mental_model_mismatch: str
    next_action: NextAction
    reasoning: str

    @classmethod
    def zeroed(cls) -> "ScoreRecord":
        return cls(
            cascade_score=0,
            specificity_score=0,
            is_root_cause=False,
            is_compensating_work=False,
            second_order_effects="",
            mental_model_mismatch="",
            next_action=NextAction.MOVE_ON,
            reasoning="",
        )

    @property
    def is_high_priority(self) -> bool:
        return self.cascade_score >= 8


class QuestionResult(LLMRecord):
    question: str = Field(min_length=1)
    explanation: str

    @field_validator("question")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("question is blank")
        return value.strip()


class PatternRecord(LLMRecord):
    pattern_detected: StrictBool
    pattern_type: PatternType = PatternType.NONE
    confidence: Percent = 0
    description: str = ""
    hypothesis: str = ""
    affected_workflows: list[int] = Field(default_factory=list)
    common_trigger: str | None = None
    recommendation: str = ""

    @classmethod
    def none_detected(cls) -> "PatternRecord":
        return cls(pattern_detected=False)


class GateScores(LLMRecord):
    standalone_value: Score
    cascade_effect: Score
    root_cause: Score


class ValidationReply(LLMRecord):
    confidence: Percent
    reasoning: str
    scores: GateScores
    questions: list[str] = Field(default_factory=list)
    red_flags: list[str] = Field(default_factory=list)


class GateResults(LLMRecord):
    standalone_value: bool
    cascade_effect: bool
    root_cause: bool

    @property
    def all_passed(self) -> bool:
        return self.standalone_value and self.cascade_effect and self.root_cause


class ValidationResult(LLMRecord):
    is_eigenquestion: bool
    confidence: Percent
    reasoning: str
    scores: GateScores
    failure_points: GateResults
    questions: list[str] = Field(default_factory=list)
    red_flags: list[str] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Aggregation records
# ---------------------------------------------------------------------------

class CascadeAnalysis(LLMRecord):
    trigger_workflow: str = ""
    first_order_effects: str = ""
    second_order_effects: str = ""
    third_order_effects: str = ""
    affected_teams: list[str] = Field(default_factory=list)
    executive_escalation: StrictBool = False

    @field_validator("affected_teams")
    @classmethod
    def _unique_teams(cls, teams: list[str]) -> list[str]:
        return list(dict.fromkeys(teams))


class WorkflowAnalysis(LLMRecord):
    eigenquestion: str = Field(min_length=1)
    reasoning: str
    cascade_analysis: CascadeAnalysis
    total_value: Money
    patterns: list[str] = Field(default_factory=list)
    mental_model_mismatch: str = ""
    success_metrics: list[str] = Field(default_factory=list)
    confidence: Percent = 0

    @classmethod
    def fallback(cls) -> "WorkflowAnalysis":
        return cls(
            eigenquestion="Manual analysis needed",
            reasoning="API error occurred",
            cascade_analysis=CascadeAnalysis(),
            total_value=0,
            patterns=[],
            mental_model_mismatch="",
            success_metrics=[],
            confidence=0,
        )


class PriorityItem(LLMRecord):
    department: str
    workflow: str
    value: Money


class GlobalReport(LLMRecord):
    global_eigenquestion: str = Field(min_length=1)
    reasoning: str
    cross_department_patterns: list[str] = Field(default_factory=list)
    priority_sequence: list[PriorityItem] = Field(default_factory=list)
    total_organization_value: Money

    @classmethod
    def fallback(cls) -> "GlobalReport":
        return cls(
            global_eigenquestion="Manual analysis needed",
            reasoning="API error",
            cross_department_patterns=[],
            priority_sequence=[],
            total_organization_value=0,
        )


class DepartmentSummary(LLMRecord):
    """One completed department, as handed to the organization-level aggregation."""

    department: str
    eigenquestion: str
    reasoning: str
    workflows: list[dict]
    total_value: Money


# ---------------------------------------------------------------------------
# Persisted records (snake_case on disk)
# ---------------------------------------------------------------------------

class QAPair(BaseModel):
    model_config = ConfigDict(frozen=True)

    question: str
    answer: str


class Workflow(BaseModel):
    """A closed workflow. Immutable once appended to a session."""

    model_config = ConfigDict(frozen=True)

    transcript: list[QAPair]
    cascade_score: Score
    depth: int = Field(ge=0)

    def to_prompt(self) -> dict:
        return {
            "responses": [pair.model_dump() for pair in self.transcript],
            "cascadeScore": self.cascade_score,
            "depth": self.depth,
        }


SessionStatus = Literal["in_progress", "completed"]


class DiagnosticSession(BaseModel):
    id: str
    organization_id: str
    user_id: str
    department: str
    status: SessionStatus = "in_progress"
    completion_percentage: Percent = 0
    workflows: list[Workflow] = Field(default_factory=list)
    eigenquestion: str | None = None
    eigenquestion_reasoning: str | None = None
    total_value: Money = 0
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    @model_validator(mode="after")
    def _completion_invariant(self):
        completed = self.status == "completed"
        if completed != (self.completion_percentage == 100):
            raise ValueError("status 'completed' requires completion_percentage 100 and vice versa")
        if completed != (self.eigenquestion is not None):
            raise ValueError("eigenquestion is set exactly when the session is completed")
        return self


class GlobalAnalysis(BaseModel):
    id: str
    organization_id: str
    global_eigenquestion: str
    reasoning: str
    cross_department_patterns: list[str] = Field(default_factory=list)
    priority_ranking: list[PriorityItem] = Field(default_factory=list)
    total_organization_value: Money = 0
    generated_at: datetime = Field(default_factory=utcnow)


class Organization(BaseModel):
    id: str
    name: str
    industry: str = "general"
    created_at: datetime = Field(default_factory=utcnow)


Role = Literal["admin", "department_head"]


class DirectoryUser(BaseModel):
    """Resolved identity: the only thing the core needs from auth."""

    id: str
    organization_id: str
    name: str = ""
    email: str = ""
    department: str
    role: Role = "department_head"
    invite_status: str = "pending"
