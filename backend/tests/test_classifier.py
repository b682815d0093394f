"""Unit tests for the query classifier."""

import pytest

from app.core.exceptions import UpstreamError, ValidationError
from app.features.assistant.classifier import QueryClassifier, parse_route_label
from app.features.assistant.schemas import Route
from tests.fakes import FakeGenerator


@pytest.mark.parametrize(
    "raw,expected",
    [
        ("POLICY", Route.POLICY),
        ("concept", Route.CONCEPT),
        ("  ESCALATE\n", Route.ESCALATE),
        ("Category: POLICY.", Route.POLICY),
        ("POLICY POLICY", Route.POLICY),
        ("POLICY or CONCEPT", None),
        ("I think this is about grading", None),
        ("POLICYCONCEPT", None),
        ("", None),
        (None, None),
    ],
)
def test_parse_route_label(raw, expected):
    assert parse_route_label(raw) == expected


class TestQueryClassifier:
    def test_routes_on_generator_label(self):
        generator = FakeGenerator("CONCEPT")
        decision = QueryClassifier(generator).classify("What is a binary tree?")

        assert decision.route == Route.CONCEPT
        assert decision.raw_label == "CONCEPT"
        prompt, system = generator.calls[0]
        assert "What is a binary tree?" in prompt
        assert system

    def test_malformed_output_escalates(self):
        decision = QueryClassifier(FakeGenerator("Sure! Happy to help.")).classify("When is the exam?")
        assert decision.route == Route.ESCALATE
        assert decision.reason == "unrecognized classifier output"

    def test_two_labels_escalate(self):
        decision = QueryClassifier(FakeGenerator("POLICY, or maybe CONCEPT")).classify("When is the exam?")
        assert decision.route == Route.ESCALATE

    def test_empty_question_rejected_before_generation(self):
        generator = FakeGenerator("POLICY")
        with pytest.raises(ValidationError):
            QueryClassifier(generator).classify("  ")
        assert generator.calls == []

    def test_generation_failure_propagates(self):
        generator = FakeGenerator(UpstreamError("generation", "quota exceeded"))
        with pytest.raises(UpstreamError):
            QueryClassifier(generator).classify("When is the exam?")
