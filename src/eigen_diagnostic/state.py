"""Per-session conversation state, passed explicitly through the orchestrator."""

from typing import Literal

from pydantic import BaseModel, Field

from .schemas import QAPair, Workflow, WorkflowAnalysis

Phase = Literal["awaiting_answer", "completed"]
TurnKind = Literal["question", "answer", "pattern", "error", "result"]


class ChatTurn(BaseModel):
    role: Literal["assistant", "user"]
    kind: TurnKind
    content: str
    explanation: str = ""


class SessionState(BaseModel):
    """Everything the orchestrator needs between turns for one diagnostic session.

    The orchestrator never mutates a state it was given; each successful turn
    returns a new one.
    """

    session_id: str
    organization_id: str
    department: str
    industry: str

    phase: Phase = "awaiting_answer"
    started: bool = False
    pending_question: str | None = None

    transcript: list[QAPair] = Field(default_factory=list)  # current workflow
    depth: int = 0
    last_cascade_score: int = 0
    closed_workflows: list[Workflow] = Field(default_factory=list)

    messages: list[ChatTurn] = Field(default_factory=list)
    result: WorkflowAnalysis | None = None

    @property
    def workflow_count(self) -> int:
        return len(self.closed_workflows)

    @property
    def is_completed(self) -> bool:
        return self.phase == "completed"

    def last_bot_turn(self) -> ChatTurn | None:
        for turn in reversed(self.messages):
            if turn.role == "assistant":
                return turn
        return None

    def scoring_context(self) -> dict:
        return {
            "department": self.department,
            "previousAnswers": [pair.model_dump() for pair in self.transcript],
            "currentWorkflowDepth": self.depth,
        }
