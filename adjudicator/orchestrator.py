"""
Adjudication Orchestrator
=========================

Builds prompts from case state, calls the reasoning engine and turns its
free-text answer into a Verdict or an ArgumentResponse.

Parsing is two-stage: strict parse of the first embedded JSON object,
then a well-defined fallback. Unparseable output never raises; only a
missing configuration or a failed engine call does.

The engine is any object with:
    is_configured() -> bool
    async generate(prompt: str) -> str
LLMClient is the production implementation.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Generic, List, Optional, TypeVar

from pydantic import ValidationError as PydanticValidationError

from .errors import (
    AdjudicationError,
    DocumentsIncomplete,
    JudgmentRequired,
    ReasoningEngineError,
    ReasoningEngineUnavailable,
)
from .llm_client import parse_json_object, safe_log_content
from .schemas import (
    Argument,
    ArgumentResponse,
    ArgumentResponsePayload,
    Case,
    Decision,
    Document,
    Side,
    Verdict,
    VerdictChange,
    VerdictPayload,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_PREVIEW_CHARS = 2000
TRUNCATION_MARKER = "... [truncated]"
FALLBACK_CONFIDENCE = 0.5
FALLBACK_NOTES = "Response could not be parsed into structured format"
SUMMARY_FAILED = "Case summary generation failed."


@dataclass
class ParsedResponse(Generic[T]):
    """Outcome of parsing engine output: structured value or fallback"""
    value: T
    structured: bool
    error: str = ""


# =============================================================================
# Prompt building
# =============================================================================

def truncate_text(text: Optional[str], max_length: int = 1000) -> str:
    """
    Cut text to max_length characters plus a marker.

    Cuts at the last space when that keeps at least 80% of the window,
    otherwise mid-word.
    """
    if not text or len(text) <= max_length:
        return text or ""

    truncated = text[:max_length]
    last_space = truncated.rfind(" ")

    if last_space > max_length * 0.8:
        return truncated[:last_space] + TRUNCATION_MARKER

    return truncated + TRUNCATION_MARKER


def format_documents(documents: List[Document], preview_chars: int = DEFAULT_PREVIEW_CHARS) -> str:
    if not documents:
        return "No documents submitted."

    return "\n\n".join(
        f"Document {index}: {doc.filename}\n"
        f"Content Preview: {truncate_text(doc.extracted_text, preview_chars)}\n"
        f"---"
        for index, doc in enumerate(documents, start=1)
    )


def format_previous_arguments(arguments: List[Argument]) -> str:
    if not arguments:
        return "No previous arguments in this case."

    return "\n\n".join(
        f"Argument {index} - {arg.side.party_name}:\n"
        f"\"{arg.argument}\"\n\n"
        f"AI Judge Response:\n"
        f"{arg.ai_response.response or 'No response recorded'}\n"
        f"---"
        for index, arg in enumerate(arguments, start=1)
    )


def build_verdict_prompt(case: Case, preview_chars: int = DEFAULT_PREVIEW_CHARS) -> str:
    case_type = case.case_type.value
    return f"""You are an experienced AI Judge applying the law of {case.country}. You are presiding over a {case_type} case: "{case.title}".

CASE DESCRIPTION:
{case.description}

CASE TYPE: {case_type}
JURISDICTION: {case.country}

PLAINTIFF / SIDE A SUBMISSIONS:
Description: {case.side_a.description or 'No description provided'}
Documents and Evidence:
{format_documents(case.side_a.documents, preview_chars)}

DEFENDANT / SIDE B SUBMISSIONS:
Description: {case.side_b.description or 'No description provided'}
Documents and Evidence:
{format_documents(case.side_b.documents, preview_chars)}

INSTRUCTIONS:
1. Weigh the evidence and arguments of both sides objectively
2. Apply the laws and legal principles of {case.country}
3. Consider relevant precedent and established doctrine
4. Explain your legal reasoning clearly
5. Remain open to reconsideration if compelling new arguments are presented

Respond with a single JSON object in this format:
{{
  "decision": "favor_side_a" | "favor_side_b" | "split_decision" | "insufficient_evidence",
  "reasoning": "Detailed explanation of your legal reasoning",
  "keyFindings": ["Key factual findings behind the decision"],
  "legalPrinciples": ["Laws, statutes or principles applied"],
  "damages": "Damages or remedies awarded, if any",
  "notes": "Additional judicial notes",
  "confidence": 0.0-1.0,
  "openToReconsideration": true/false
}}"""


def build_argument_prompt(case: Case, side: Side, argument: str) -> str:
    verdict = case.verdict
    decision = verdict.decision.value if verdict else "Not yet decided"
    reasoning = verdict.reasoning if verdict else "No initial reasoning available"

    return f"""You are the AI Judge in the case: "{case.title}"

CURRENT VERDICT SUMMARY:
Decision: {decision}
Reasoning: {reasoning}

PREVIOUS ARGUMENTS IN THIS CASE:
{format_previous_arguments(case.arguments)}

NEW ARGUMENT FROM {side.party_name.upper()} (SIDE {side.value}):
"{argument}"

INSTRUCTIONS:
1. Consider this argument in the context of your current verdict
2. Decide whether it brings new evidence, precedent or reasoning
3. Decide whether it warrants changing the verdict
4. Apply the legal standards of {case.country}
5. Stay impartial, and change your position only if the argument is compelling and legally sound

Respond with a single JSON object in this format:
{{
  "response": "Your judicial response to this argument",
  "verdictChange": "none" | "minor_modification" | "significant_change" | "reversal",
  "newReasoning": "New reasoning if the verdict changed, otherwise null",
  "addressedPoints": ["Points from the argument you addressed"],
  "remainingConcerns": ["Outstanding concerns or questions"],
  "legalCitations": ["Laws, cases or precedents referenced"],
  "confidence": 0.0-1.0,
  "requestsClarification": "Clarification needed from either side, otherwise null"
}}"""


def build_summary_prompt(case: Case) -> str:
    return f"""Provide a concise legal summary of this case:

Case: {case.title}
Type: {case.case_type.value}
Jurisdiction: {case.country}

Description: {case.description}

Summarize in 2-3 sentences the core legal issues and disputes involved."""


# =============================================================================
# Response parsing
# =============================================================================

def _normalize_enum_value(data: dict, key: str):
    value = data.get(key)
    if isinstance(value, str):
        data[key] = value.strip().lower().replace("-", "_").replace(" ", "_")


def _parse_structured(raw: str, model, enum_keys: List[str]):
    data, ok, error = parse_json_object(raw)
    if not ok:
        return None, error

    for key in enum_keys:
        _normalize_enum_value(data, key)

    try:
        return model.model_validate(data), ""
    except PydanticValidationError as e:
        return None, f"{e.error_count()} invalid field(s)"


def parse_verdict_response(raw: str) -> ParsedResponse[VerdictPayload]:
    payload, error = _parse_structured(raw, VerdictPayload, ["decision"])
    if payload is not None:
        return ParsedResponse(value=payload, structured=True)

    return ParsedResponse(
        value=VerdictPayload(
            decision=Decision.INSUFFICIENT_EVIDENCE,
            reasoning=raw or "",
            key_findings=[],
            legal_principles=[],
            damages=None,
            notes=FALLBACK_NOTES,
            confidence=FALLBACK_CONFIDENCE,
            open_to_reconsideration=True,
        ),
        structured=False,
        error=error,
    )


def parse_argument_response(raw: str) -> ParsedResponse[ArgumentResponsePayload]:
    payload, error = _parse_structured(raw, ArgumentResponsePayload, ["verdictChange", "verdict_change"])
    if payload is not None:
        return ParsedResponse(value=payload, structured=True)

    return ParsedResponse(
        value=ArgumentResponsePayload(
            response=raw or "",
            verdict_change=VerdictChange.NONE,
            new_reasoning=None,
            addressed_points=[],
            remaining_concerns=[],
            legal_citations=[],
            confidence=FALLBACK_CONFIDENCE,
            requests_clarification=None,
        ),
        structured=False,
        error=error,
    )


# =============================================================================
# Orchestrator
# =============================================================================

class AdjudicationOrchestrator:
    """
    Renders verdicts and answers follow-up arguments.

    Usage:
        orchestrator = AdjudicationOrchestrator(LLMClient(settings))
        verdict = await orchestrator.render_verdict(case)
    """

    def __init__(self, engine: Any, preview_chars: int = DEFAULT_PREVIEW_CHARS):
        self.engine = engine
        self.preview_chars = preview_chars

    async def _generate(self, prompt: str, purpose: str) -> str:
        if not self.engine.is_configured():
            raise ReasoningEngineUnavailable(
                "Reasoning engine not configured",
                user_message="AI judge is not configured. Please set the reasoning engine API key.",
            )

        try:
            raw = await self.engine.generate(prompt)
        except AdjudicationError:
            raise
        except Exception as e:
            logger.error(f"Reasoning engine failed during {purpose}: {e}")
            raise ReasoningEngineError(
                f"Reasoning engine failed during {purpose}: {e}",
                user_message="Failed to get a response from the AI judge",
            ) from e

        logger.debug(f"Engine output for {purpose}: {safe_log_content(raw)}")
        return raw or ""

    async def render_verdict(self, case: Case) -> Verdict:
        if not (case.side_a.has_documents and case.side_b.has_documents):
            raise DocumentsIncomplete(case.case_id)

        prompt = build_verdict_prompt(case, self.preview_chars)
        raw = await self._generate(prompt, f"verdict for {case.case_id}")

        parsed = parse_verdict_response(raw)
        if not parsed.structured:
            logger.warning(f"Verdict for {case.case_id} fell back to unstructured output: {parsed.error}")

        return Verdict(
            **parsed.value.model_dump(),
            timestamp=datetime.utcnow(),
            case_id=case.case_id,
            country=case.country,
            case_type=case.case_type,
        )

    async def respond_to_argument(self, case: Case, side: Side, argument: str) -> ArgumentResponse:
        if case.verdict is None:
            raise JudgmentRequired(case.case_id)

        prompt = build_argument_prompt(case, side, argument)
        raw = await self._generate(prompt, f"argument response for {case.case_id}")

        parsed = parse_argument_response(raw)
        if not parsed.structured:
            logger.warning(f"Argument response for {case.case_id} fell back to unstructured output: {parsed.error}")

        return ArgumentResponse(
            **parsed.value.model_dump(),
            timestamp=datetime.utcnow(),
            original_argument=argument,
            side=side,
        )

    async def summarize_case(self, case: Case) -> str:
        """Short summary of the legal issues; never raises on engine failure"""
        try:
            raw = await self._generate(build_summary_prompt(case), f"summary for {case.case_id}")
        except AdjudicationError as e:
            logger.warning(f"Case summary for {case.case_id} failed: {e}")
            return SUMMARY_FAILED
        return raw.strip() or SUMMARY_FAILED
