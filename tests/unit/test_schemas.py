"""Unit tests for eigen_diagnostic.schemas and config overrides."""

import pytest
from pydantic import ValidationError

from eigen_diagnostic.config import DEFAULT_CONFIG, get_model_profile
from eigen_diagnostic.errors import ContractViolation
from eigen_diagnostic.schemas import CascadeAnalysis, PatternRecord, QAPair, ScoreRecord, Workflow, parse_record
from tests.conftest import score_reply


class TestParseRecord:
    def test_accepts_camel_case(self):
        record = parse_record(ScoreRecord, score_reply(9, 7), "scoring")
        assert record.cascade_score == 9

    def test_non_object(self):
        with pytest.raises(ContractViolation, match="expected a JSON object"):
            parse_record(ScoreRecord, ["not", "a", "dict"], "scoring")

    def test_names_offending_fields(self):
        with pytest.raises(ContractViolation, match="specificityScore"):
            parse_record(ScoreRecord, score_reply(specificity=12), "scoring")

    def test_to_wire_is_camel_case(self):
        wire = parse_record(ScoreRecord, score_reply(), "scoring").to_wire()
        assert wire["nextAction"] == "CASCADE_PROBE"
        assert "next_action" not in wire


class TestRecords:
    def test_affected_teams_deduplicated(self):
        analysis = CascadeAnalysis(affected_teams=["Ops", "Finance", "Ops"])
        assert analysis.affected_teams == ["Ops", "Finance"]

    def test_none_detected(self):
        record = PatternRecord.none_detected()
        assert record.pattern_detected is False
        assert record.affected_workflows == []

    def test_workflow_is_frozen(self):
        workflow = Workflow(transcript=[QAPair(question="q", answer="a")], cascade_score=5, depth=1)
        with pytest.raises(ValidationError):
            workflow.cascade_score = 9

    def test_workflow_prompt_shape(self):
        workflow = Workflow(transcript=[QAPair(question="q", answer="a")], cascade_score=5, depth=1)
        assert workflow.to_prompt() == {
            "responses": [{"question": "q", "answer": "a"}],
            "cascadeScore": 5,
            "depth": 1,
        }


class TestConfig:
    def test_defaults(self):
        assert DEFAULT_CONFIG.thresholds.high_cascade == 8
        assert (DEFAULT_CONFIG.gates.standalone_value, DEFAULT_CONFIG.gates.cascade_effect,
                DEFAULT_CONFIG.gates.root_cause) == (8, 7, 8)
        assert DEFAULT_CONFIG.pattern_notify_confidence == 70
        assert DEFAULT_CONFIG.enforce_policy is False

    def test_config_is_immutable(self):
        with pytest.raises(ValidationError):
            DEFAULT_CONFIG.enforce_policy = True

    def test_override_copy(self):
        cfg = DEFAULT_CONFIG.model_copy(update={"progress_cap": 80})
        assert cfg.progress_cap == 80
        assert DEFAULT_CONFIG.progress_cap == 90

    def test_model_profiles(self):
        assert get_model_profile("development")["temperature"] == 0.3
        assert get_model_profile("production")["temperature"] == 0.2
