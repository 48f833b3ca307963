"""
Adjudication Orchestrator Tests
===============================

Prompt building, two-stage response parsing and engine failure handling.
"""

import json
from datetime import datetime

import pytest

from adjudicator.errors import (
    DocumentsIncomplete,
    JudgmentRequired,
    ReasoningEngineError,
    ReasoningEngineUnavailable,
)
from adjudicator.orchestrator import (
    FALLBACK_NOTES,
    SUMMARY_FAILED,
    TRUNCATION_MARKER,
    AdjudicationOrchestrator,
    build_argument_prompt,
    build_verdict_prompt,
    parse_argument_response,
    parse_verdict_response,
    truncate_text,
)
from adjudicator.schemas import (
    Argument,
    ArgumentResponse,
    Case,
    CaseSide,
    CaseType,
    Decision,
    Document,
    Side,
    Verdict,
    VerdictChange,
)

from .conftest import ARGUMENT_JSON, VERDICT_JSON, FakeReasoningEngine


def _case(with_side_b=True, verdict=False, arguments=()):
    doc_a = Document(filename="contract.pdf", mimetype="application/pdf", size=100,
                     extracted_text="Supply contract for 500 widgets.")
    doc_b = Document(filename="reply.txt", mimetype="text/plain", size=50,
                     extracted_text="Delivery delayed by the carrier.")
    case = Case(
        case_id="case_test",
        title="Smith v. Jones",
        description="Late delivery of goods",
        country="United States",
        case_type=CaseType.CIVIL,
        side_a=CaseSide(description="Goods were late", documents=[doc_a]),
        side_b=CaseSide(documents=[doc_b] if with_side_b else []),
        arguments=list(arguments),
    )
    if verdict:
        case.verdict = Verdict(
            decision=Decision.FAVOR_SIDE_A,
            reasoning="Late delivery breached the contract.",
            confidence=0.8,
            timestamp=datetime.utcnow(),
            case_id=case.case_id,
            country=case.country,
            case_type=case.case_type,
        )
    return case


class TestTruncateText:

    def test_short_text_unchanged(self):
        assert truncate_text("short text", 100) == "short text"

    def test_cuts_at_last_space_near_the_end(self):
        text = "word " * 500
        result = truncate_text(text, 1000)
        assert result.endswith(TRUNCATION_MARKER)
        body = result[:-len(TRUNCATION_MARKER)]
        assert not body.endswith(" ")
        assert len(body) <= 1000
        assert body.split(" ")[-1] == "word"

    def test_cuts_mid_word_without_late_space(self):
        text = "x" * 2500
        result = truncate_text(text, 1000)
        assert result == "x" * 1000 + TRUNCATION_MARKER

    def test_empty(self):
        assert truncate_text(None) == ""


class TestPrompts:

    def test_verdict_prompt_embeds_case_and_documents(self):
        prompt = build_verdict_prompt(_case())
        assert "Smith v. Jones" in prompt
        assert "United States" in prompt
        assert "civil" in prompt
        assert "Document 1: contract.pdf" in prompt
        assert "Supply contract for 500 widgets." in prompt
        assert "No description provided" in prompt

    def test_verdict_prompt_is_deterministic(self):
        assert build_verdict_prompt(_case()) == build_verdict_prompt(_case())

    def test_verdict_prompt_truncates_previews(self):
        case = _case()
        case.side_a.documents[0].extracted_text = "y" * 5000
        prompt = build_verdict_prompt(case, preview_chars=100)
        assert "y" * 100 + TRUNCATION_MARKER in prompt
        assert "y" * 101 not in prompt

    def test_argument_prompt_embeds_history(self):
        previous = Argument(
            id="abcd1234",
            side=Side.B,
            argument="The carrier was at fault",
            ai_response=ArgumentResponse(
                response="Carrier delay is not a defense here.",
                confidence=0.7,
                timestamp=datetime.utcnow(),
                original_argument="The carrier was at fault",
                side=Side.B,
            ),
            timestamp=datetime.utcnow(),
            argument_number=1,
        )
        prompt = build_argument_prompt(_case(verdict=True, arguments=[previous]), Side.A, "New invoices")
        assert "Decision: favor_side_a" in prompt
        assert "Argument 1 - Defendant" in prompt
        assert "Carrier delay is not a defense here." in prompt
        assert "NEW ARGUMENT FROM PLAINTIFF (SIDE A)" in prompt
        assert '"New invoices"' in prompt


class TestParseVerdict:

    def test_embedded_object_parses_to_its_fields(self):
        raw = f"Here is my ruling:\n```json\n{VERDICT_JSON}\n```\nThank you."
        parsed = parse_verdict_response(raw)

        assert parsed.structured is True
        expected = json.loads(VERDICT_JSON)
        value = parsed.value.to_json_dict()
        for key, val in expected.items():
            assert value[key] == val

    def test_braces_inside_strings(self):
        payload = dict(json.loads(VERDICT_JSON), reasoning="Clause {4} and } stray brace")
        parsed = parse_verdict_response("prefix " + json.dumps(payload) + " {trailing}")
        assert parsed.structured is True
        assert parsed.value.reasoning == "Clause {4} and } stray brace"

    def test_decision_spelling_is_normalized(self):
        payload = dict(json.loads(VERDICT_JSON), decision="Favor-Side-B")
        parsed = parse_verdict_response(json.dumps(payload))
        assert parsed.structured is True
        assert parsed.value.decision == Decision.FAVOR_SIDE_B

    def test_stray_brace_in_prose_does_not_hide_verdict(self):
        parsed = parse_verdict_response("Draft { incomplete.\n" + VERDICT_JSON)
        assert parsed.structured is True
        assert parsed.value.decision == Decision.FAVOR_SIDE_A

    def test_no_object_falls_back(self):
        raw = "I find for the plaintiff, but cannot format my answer."
        parsed = parse_verdict_response(raw)

        assert parsed.structured is False
        assert parsed.error
        assert parsed.value.decision == Decision.INSUFFICIENT_EVIDENCE
        assert parsed.value.reasoning == raw
        assert parsed.value.confidence == 0.5
        assert parsed.value.open_to_reconsideration is True
        assert parsed.value.notes == FALLBACK_NOTES
        assert parsed.value.key_findings == []

    @pytest.mark.parametrize("override", [
        {"decision": "maybe"},
        {"confidence": 1.7},
        {"reasoning": None},
    ])
    def test_invalid_fields_fall_back(self, override):
        payload = dict(json.loads(VERDICT_JSON), **override)
        parsed = parse_verdict_response(json.dumps(payload))
        assert parsed.structured is False
        assert parsed.value.decision == Decision.INSUFFICIENT_EVIDENCE

    def test_malformed_json_falls_back(self):
        parsed = parse_verdict_response('{"decision": "favor_side_a", "reasoning": }')
        assert parsed.structured is False


class TestParseArgument:

    def test_structured(self):
        parsed = parse_argument_response(ARGUMENT_JSON)
        assert parsed.structured is True
        assert parsed.value.verdict_change == VerdictChange.NONE
        assert parsed.value.legal_citations == ["UCC 2-601"]

    def test_null_lists_become_empty(self):
        payload = dict(json.loads(ARGUMENT_JSON), addressedPoints=None)
        parsed = parse_argument_response(json.dumps(payload))
        assert parsed.structured is True
        assert parsed.value.addressed_points == []

    def test_fallback(self):
        parsed = parse_argument_response("Counsel raises a fair point.")
        assert parsed.structured is False
        assert parsed.value.response == "Counsel raises a fair point."
        assert parsed.value.verdict_change == VerdictChange.NONE
        assert parsed.value.confidence == 0.5
        assert parsed.value.new_reasoning is None
        assert parsed.value.remaining_concerns == []


class TestOrchestrator:

    @pytest.mark.asyncio
    async def test_render_verdict_stamps_case_fields(self):
        orchestrator = AdjudicationOrchestrator(FakeReasoningEngine())
        verdict = await orchestrator.render_verdict(_case())

        assert verdict.decision == Decision.FAVOR_SIDE_A
        assert verdict.case_id == "case_test"
        assert verdict.country == "United States"
        assert verdict.case_type == CaseType.CIVIL
        assert verdict.timestamp is not None

    @pytest.mark.asyncio
    async def test_render_verdict_requires_both_sides(self):
        engine = FakeReasoningEngine()
        with pytest.raises(DocumentsIncomplete):
            await AdjudicationOrchestrator(engine).render_verdict(_case(with_side_b=False))
        assert engine.prompts == []

    @pytest.mark.asyncio
    async def test_unconfigured_engine_is_not_called(self):
        engine = FakeReasoningEngine(configured=False)
        with pytest.raises(ReasoningEngineUnavailable):
            await AdjudicationOrchestrator(engine).render_verdict(_case())
        assert engine.prompts == []

    @pytest.mark.asyncio
    async def test_engine_failure_is_reasoning_engine_error(self):
        engine = FakeReasoningEngine(error=RuntimeError("connection reset"))
        with pytest.raises(ReasoningEngineError):
            await AdjudicationOrchestrator(engine).render_verdict(_case())

    @pytest.mark.asyncio
    async def test_unparseable_verdict_degrades(self):
        engine = FakeReasoningEngine(responses=["The evidence is inconclusive."])
        verdict = await AdjudicationOrchestrator(engine).render_verdict(_case())
        assert verdict.decision == Decision.INSUFFICIENT_EVIDENCE
        assert verdict.reasoning == "The evidence is inconclusive."
        assert verdict.case_id == "case_test"

    @pytest.mark.asyncio
    async def test_respond_to_argument_requires_verdict(self):
        with pytest.raises(JudgmentRequired):
            await AdjudicationOrchestrator(FakeReasoningEngine()).respond_to_argument(
                _case(), Side.A, "new evidence"
            )

    @pytest.mark.asyncio
    async def test_respond_to_argument_stamps_argument(self):
        orchestrator = AdjudicationOrchestrator(FakeReasoningEngine())
        response = await orchestrator.respond_to_argument(_case(verdict=True), Side.B, "Force majeure applies")

        assert response.side == Side.B
        assert response.original_argument == "Force majeure applies"
        assert response.response.startswith("The new evidence")

    @pytest.mark.asyncio
    async def test_summarize_case(self):
        summary = await AdjudicationOrchestrator(FakeReasoningEngine()).summarize_case(_case())
        assert "late delivery" in summary

    @pytest.mark.asyncio
    async def test_summarize_case_never_raises(self):
        summary = await AdjudicationOrchestrator(FakeReasoningEngine(configured=False)).summarize_case(_case())
        assert summary == SUMMARY_FAILED
