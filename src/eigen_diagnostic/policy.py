"""Next-action policy: the table the scoring call is instructed to follow."""

import logging

from .config import PolicyThresholds
from .schemas import NextAction

logger = logging.getLogger("eigen.policy")


def decide_next_action(
    cascade_score: int,
    specificity_score: int,
    depth: int,
    thresholds: PolicyThresholds | None = None,
) -> NextAction:
    """Expected next action for a scored answer. First matching row wins.

    ``depth`` is the number of rounds already in the current workflow when
    the answer was scored.
    """
    t = thresholds or PolicyThresholds()

    if cascade_score >= t.high_cascade:
        if specificity_score < t.high_cascade_min_specificity:
            return NextAction.FORCE_SPECIFICITY
        if depth >= t.validate_depth:
            return NextAction.VALIDATE_EIGENQUESTION
        return NextAction.CASCADE_PROBE

    if cascade_score < t.low_cascade:
        return NextAction.MOVE_ON if depth == 0 else NextAction.NEW_WORKFLOW

    if specificity_score < t.min_specificity:
        return NextAction.FORCE_SPECIFICITY

    # Mid-range cascade with a usable answer: keep digging
    return NextAction.CASCADE_PROBE


def describe_rules(thresholds: PolicyThresholds | None = None) -> str:
    """Render the table as prompt text so the model is told exactly what is checked."""
    t = thresholds or PolicyThresholds()
    return "\n".join([
        f"- If cascadeScore >= {t.high_cascade} AND specificityScore < {t.high_cascade_min_specificity}: FORCE_SPECIFICITY",
        f"- If cascadeScore >= {t.high_cascade} AND currentWorkflowDepth >= {t.validate_depth}: VALIDATE_EIGENQUESTION",
        f"- If cascadeScore >= {t.high_cascade} AND specificityScore >= {t.high_cascade_min_specificity}: CASCADE_PROBE (go deeper)",
        f"- If cascadeScore < {t.low_cascade}: MOVE_ON if currentWorkflowDepth is 0, otherwise NEW_WORKFLOW",
        f"- If specificityScore < {t.min_specificity}: FORCE_SPECIFICITY",
        "- Otherwise: CASCADE_PROBE",
    ])


def reconcile(llm_action: NextAction, expected: NextAction, enforce: bool) -> NextAction:
    """Pick the action the orchestrator acts on.

    The model's choice is authoritative unless ``enforce`` is set; divergence
    is always logged so conformance drift shows up in the logs.
    """
    if llm_action == expected:
        return llm_action
    logger.warning(
        "Policy divergence: model chose %s, table expects %s (%s)",
        llm_action.value, expected.value, "enforced" if enforce else "advisory",
    )
    return expected if enforce else llm_action
