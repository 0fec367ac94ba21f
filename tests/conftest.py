"""Root conftest: FakeLanguageModel, canned reply builders and store fixtures."""

import copy
import hashlib
import os
import tempfile

# Keep the rotating log file and default store out of the real workspace
os.environ.setdefault("EIGEN_WORKSPACE", tempfile.mkdtemp(prefix="eigen-test-"))

import pytest


class FakeLanguageModel:
    """Stand-in for AnthropicLanguageModel.

    Replies are looked up by a hash of (system, user) first, then taken from
    the queue in order. A reply that is an exception instance is raised
    instead of returned.
    """

    def __init__(self, queue=None, replies=None):
        self.queue = list(queue or [])
        self.replies = dict(replies or {})
        self.calls: list[tuple[str, str]] = []

    @staticmethod
    def key(system: str, user: str) -> str:
        return hashlib.sha256(f"{system}\x00{user}".encode()).hexdigest()

    def reply_to(self, system: str, user: str, reply) -> None:
        self.replies[self.key(system, user)] = reply

    def push(self, *replies) -> None:
        self.queue.extend(replies)

    @property
    def call_count(self) -> int:
        return len(self.calls)

    def complete(self, system: str, user: str) -> dict:
        self.calls.append((system, user))
        key = self.key(system, user)
        if key in self.replies:
            reply = self.replies[key]
        elif self.queue:
            reply = self.queue.pop(0)
        else:
            raise AssertionError(f"FakeLanguageModel has no reply for call #{self.call_count}")
        if isinstance(reply, Exception):
            raise reply
        return copy.deepcopy(reply)


# ---------------------------------------------------------------------------
# Canned replies (camelCase, as the model returns them)
# ---------------------------------------------------------------------------


def score_reply(cascade=6, specificity=6, action="CASCADE_PROBE", **overrides):
    reply = {
        "cascadeScore": cascade,
        "specificityScore": specificity,
        "isRootCause": cascade >= 8,
        "isCompensatingWork": False,
        "secondOrderEffects": "Dispatch waits on the carrier list",
        "mentalModelMismatch": "",
        "nextAction": action,
        "reasoning": "internal reasoning",
    }
    reply.update(overrides)
    return reply


def question_reply(question="What happens downstream when that slips?", explanation="Tracing the cascade."):
    return {"question": question, "explanation": explanation}


def pattern_reply(detected=True, confidence=85, affected=(0, 1), **overrides):
    reply = {
        "patternDetected": detected,
        "patternType": "upstream_failure" if detected else "none",
        "confidence": confidence,
        "description": "Both workflows wait on the same late carrier confirmation",
        "hypothesis": "Carrier booking is the shared trigger",
        "affectedWorkflows": list(affected),
        "commonTrigger": "late carrier confirmation",
        "recommendation": "Ask who owns carrier booking",
    }
    reply.update(overrides)
    return reply


def validation_reply(standalone=9, cascade=8, root_cause=9, questions=(), **overrides):
    reply = {
        "confidence": 80,
        "reasoning": "Removing the task would stall shipping",
        "scores": {"standaloneValue": standalone, "cascadeEffect": cascade, "rootCause": root_cause},
        "questions": list(questions),
        "redFlags": [],
    }
    reply.update(overrides)
    return reply


def analysis_reply(eigenquestion="Who confirms carrier capacity before orders are promised?", value=120000, **overrides):
    reply = {
        "eigenquestion": eigenquestion,
        "reasoning": "Every downstream delay traces back to unconfirmed capacity",
        "cascadeAnalysis": {
            "triggerWorkflow": "carrier booking",
            "firstOrderEffects": "dispatch waits",
            "secondOrderEffects": "customer ETAs slip",
            "thirdOrderEffects": "executive escalations",
            "affectedTeams": ["Dispatch", "Customer Service", "Dispatch"],
            "executiveEscalation": True,
        },
        "totalValue": value,
        "patterns": ["upstream_failure"],
        "mentalModelMismatch": "Leadership thinks dispatch is the bottleneck",
        "successMetrics": ["Same-day carrier confirmation rate"],
        "confidence": 82,
    }
    reply.update(overrides)
    return reply


def global_reply(**overrides):
    reply = {
        "globalEigenquestion": "Who owns capacity commitments across the network?",
        "reasoning": "Two departments trace delays to the same commitment gap",
        "crossDepartmentPatterns": ["Capacity is promised before it is confirmed"],
        "prioritySequence": [
            {"department": "Logistics", "workflow": "carrier booking", "value": 120000},
        ],
        "totalOrganizationValue": 150000,
    }
    reply.update(overrides)
    return reply


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def fake_llm():
    return FakeLanguageModel()


@pytest.fixture
def store(tmp_path):
    from eigen_diagnostic.store import SessionStore

    return SessionStore(tmp_path / "store")


@pytest.fixture
def organization(store):
    return store.create_organization("Acme Freight", industry="logistics")


@pytest.fixture
def department_head(store, organization):
    return store.add_user(organization.id, "Logistics", name="Dana", email="dana@acme.test")
