"""Runtime configuration: environment constants plus the immutable DiagnosticConfig."""

import os
from pathlib import Path

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field

from . import prompts
from .prompts import OPENING_EXPLANATION, OPENING_QUESTION

load_dotenv()

MODEL_NAME = os.getenv("EIGEN_MODEL", "claude-sonnet-4-5")
FAST_MODEL_NAME = os.getenv("EIGEN_FAST_MODEL", "claude-haiku-4-5")
TEMPERATURE = float(os.getenv("EIGEN_TEMPERATURE", "0.2"))
MAX_TOKENS = int(os.getenv("EIGEN_MAX_TOKENS", "4000"))
LLM_TIMEOUT_SECONDS = float(os.getenv("EIGEN_LLM_TIMEOUT", "60"))

WORKSPACE_DIR = Path(os.getenv("EIGEN_WORKSPACE", str(Path.home() / "Documents" / "eigen-workspace")))

VOYAGE_API_KEY = os.getenv("VOYAGE_API_KEY", "")
EMBEDDING_MODEL = os.getenv("EIGEN_EMBEDDING_MODEL", "voyage-3.5")
EMBEDDING_DIMENSIONS = int(os.getenv("EIGEN_EMBEDDING_DIMENSIONS", "512"))
MAX_EVIDENCE_RESULTS = 5
MAX_EVIDENCE_CHUNK_TOKENS = 600

MODEL_PROFILES = {
    "default": {
        "name": MODEL_NAME,
        "temperature": 0.2,
        "max_tokens": 4000,
        "description": "Production model - analytical consistency",
    },
    "fast": {
        "name": FAST_MODEL_NAME,
        "temperature": 0.3,
        "max_tokens": 2000,
        "description": "Development/testing - faster, cheaper",
    },
    "creative": {
        "name": MODEL_NAME,
        "temperature": 0.7,
        "max_tokens": 4000,
        "description": "More creative/exploratory analysis",
    },
}


def get_model_profile(env: str | None = None) -> dict:
    """Pick a model profile by environment name ('production', 'development', or anything else)."""
    if env == "development":
        return MODEL_PROFILES["fast"]
    return MODEL_PROFILES["default"]


class PolicyThresholds(BaseModel):
    """Score boundaries of the next-action table."""

    model_config = ConfigDict(frozen=True)

    high_cascade: int = 8
    high_cascade_min_specificity: int = 5
    validate_depth: int = 3
    low_cascade: int = 5
    min_specificity: int = 4


class ValidationGates(BaseModel):
    """Minimum scores for the three eigenquestion gates."""

    model_config = ConfigDict(frozen=True)

    standalone_value: int = 8
    cascade_effect: int = 7
    root_cause: int = 8


class PromptSet(BaseModel):
    model_config = ConfigDict(frozen=True)

    scoring_system: str = prompts.SCORING_SYSTEM_PROMPT
    scoring_user: str = prompts.SCORING_USER_PROMPT
    question_system: str = prompts.QUESTION_SYSTEM_PROMPT
    question_user: str = prompts.QUESTION_USER_PROMPT
    pattern_system: str = prompts.PATTERN_SYSTEM_PROMPT
    pattern_user: str = prompts.PATTERN_USER_PROMPT
    validation_system: str = prompts.VALIDATION_SYSTEM_PROMPT
    validation_user: str = prompts.VALIDATION_USER_PROMPT
    workflow_aggregation_system: str = prompts.WORKFLOW_AGGREGATION_SYSTEM_PROMPT
    workflow_aggregation_user: str = prompts.WORKFLOW_AGGREGATION_USER_PROMPT
    global_aggregation_system: str = prompts.GLOBAL_AGGREGATION_SYSTEM_PROMPT
    global_aggregation_user: str = prompts.GLOBAL_AGGREGATION_USER_PROMPT


class DiagnosticConfig(BaseModel):
    """Everything the pipeline needs that is not per-session state.

    Built once and handed to each component. Override per test or per
    tenant with ``config.model_copy(update={...})``.
    """

    model_config = ConfigDict(frozen=True)

    model: str = MODEL_NAME
    temperature: float = TEMPERATURE
    max_tokens: int = MAX_TOKENS

    thresholds: PolicyThresholds = Field(default_factory=PolicyThresholds)
    gates: ValidationGates = Field(default_factory=ValidationGates)
    prompts: PromptSet = Field(default_factory=PromptSet)

    start_sentinel: str = "START"
    opening_question: str = OPENING_QUESTION
    opening_explanation: str = OPENING_EXPLANATION

    min_pattern_workflows: int = 2
    pattern_notify_confidence: int = 70

    # Progress shown while in progress never reaches 100
    progress_per_workflow: int = 25
    progress_cap: int = 90

    validate_before_finalize: bool = True
    enforce_policy: bool = False


DEFAULT_CONFIG = DiagnosticConfig()
