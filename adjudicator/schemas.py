"""
Pydantic Schemas for Adjudicator
================================

Domain records (Case, Document, Argument, Verdict), request/response
models and real-time events.

All wire-facing models serialize with camelCase aliases (caseId,
keyFindings, sideAArguments, ...) and accept either spelling on input.
"""

from typing import List, Optional, Dict, Any
from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel
from enum import Enum
from datetime import datetime


# =============================================================================
# ENUMS
# =============================================================================

class LLMMode(str, Enum):
    """Reasoning engine provider"""
    NONE = "none"
    GEMINI = "gemini"
    OPENROUTER = "openrouter"
    DEEPSEEK = "deepseek"


class Side(str, Enum):
    """Which party in the dispute"""
    A = "A"  # plaintiff
    B = "B"  # defendant

    @property
    def party_name(self) -> str:
        return "Plaintiff" if self is Side.A else "Defendant"

    @property
    def slug(self) -> str:
        return "side-a" if self is Side.A else "side-b"


class CaseType(str, Enum):
    CIVIL = "civil"
    CRIMINAL = "criminal"
    CONSTITUTIONAL = "constitutional"
    INTELLECTUAL_PROPERTY = "intellectual_property"
    FAMILY = "family"
    CORPORATE = "corporate"
    LABOR = "labor"
    ADMINISTRATIVE = "administrative"


class CaseStatus(str, Enum):
    """
    Case lifecycle status.

    Never set directly - always the result of derive_status().
    """
    CREATED = "created"
    AWAITING_DOCUMENTS = "awaiting_documents"
    READY_FOR_JUDGMENT = "ready_for_judgment"
    VERDICT_RENDERED = "verdict_rendered"
    ARGUMENTS_PHASE = "arguments_phase"


class Decision(str, Enum):
    FAVOR_SIDE_A = "favor_side_a"
    FAVOR_SIDE_B = "favor_side_b"
    SPLIT_DECISION = "split_decision"
    INSUFFICIENT_EVIDENCE = "insufficient_evidence"


class VerdictChange(str, Enum):
    NONE = "none"
    MINOR_MODIFICATION = "minor_modification"
    SIGNIFICANT_CHANGE = "significant_change"
    REVERSAL = "reversal"


class EventType(str, Enum):
    VERDICT_RENDERED = "verdictRendered"
    ARGUMENT_ADDED = "argumentAdded"


# =============================================================================
# Base
# =============================================================================

class CamelModel(BaseModel):
    """Base model with camelCase wire names"""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_json_dict(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


def _none_to_list(value):
    return [] if value is None else value


# =============================================================================
# Documents and sides
# =============================================================================

class Document(CamelModel):
    """Uploaded document with its extracted text"""
    filename: str
    mimetype: str
    size: int
    extracted_text: str
    path: Optional[str] = None  # object store key
    file_url: Optional[str] = None
    uploaded_to_cloud: bool = False


class CaseSide(CamelModel):
    """One party's submission"""
    description: Optional[str] = None
    documents: List[Document] = Field(default_factory=list)
    uploaded_at: Optional[datetime] = None

    @property
    def has_documents(self) -> bool:
        return len(self.documents) > 0


# =============================================================================
# Reasoning engine outputs
# =============================================================================

class VerdictPayload(CamelModel):
    """Structured verdict as returned by the reasoning engine"""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    decision: Decision
    reasoning: str
    key_findings: List[str] = Field(default_factory=list)
    legal_principles: List[str] = Field(default_factory=list)
    damages: Optional[str] = None
    notes: Optional[str] = None
    confidence: float = Field(ge=0.0, le=1.0)
    open_to_reconsideration: bool = True

    @field_validator("key_findings", "legal_principles", mode="before")
    @classmethod
    def lists_default_empty(cls, value):
        return _none_to_list(value)


class Verdict(VerdictPayload):
    """Verdict as recorded on a case"""
    timestamp: datetime
    case_id: str
    country: str
    case_type: CaseType


class ArgumentResponsePayload(CamelModel):
    """Structured argument response as returned by the reasoning engine"""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    response: str
    verdict_change: VerdictChange = VerdictChange.NONE
    new_reasoning: Optional[str] = None
    addressed_points: List[str] = Field(default_factory=list)
    remaining_concerns: List[str] = Field(default_factory=list)
    legal_citations: List[str] = Field(default_factory=list)
    confidence: float = Field(ge=0.0, le=1.0)
    requests_clarification: Optional[str] = None

    @field_validator("addressed_points", "remaining_concerns", "legal_citations", mode="before")
    @classmethod
    def lists_default_empty(cls, value):
        return _none_to_list(value)


class ArgumentResponse(ArgumentResponsePayload):
    """Argument response as recorded on an argument"""
    timestamp: datetime
    original_argument: str
    side: Side


class Argument(CamelModel):
    """Follow-up argument from one side, immutable once recorded"""
    id: str
    side: Side
    argument: str
    ai_response: ArgumentResponse
    timestamp: datetime
    argument_number: int


# =============================================================================
# Case
# =============================================================================

class CaseMetadata(CamelModel):
    total_arguments: int = 0
    side_a_arguments: int = 0
    side_b_arguments: int = 0
    last_activity: Optional[datetime] = None


def derive_status(
    side_a: CaseSide,
    side_b: CaseSide,
    verdict: Optional[Verdict],
    arguments: List[Argument],
) -> CaseStatus:
    """
    Compute the lifecycle status from the case's underlying data.

    Only arguments recorded after the current verdict put the case in
    the arguments phase; a fresh verdict returns it to verdict_rendered.
    """
    if verdict is not None:
        if any(arg.timestamp > verdict.timestamp for arg in arguments):
            return CaseStatus.ARGUMENTS_PHASE
        return CaseStatus.VERDICT_RENDERED
    if arguments:
        return CaseStatus.ARGUMENTS_PHASE
    if side_a.has_documents and side_b.has_documents:
        return CaseStatus.READY_FOR_JUDGMENT
    if side_a.has_documents or side_b.has_documents:
        return CaseStatus.AWAITING_DOCUMENTS
    return CaseStatus.CREATED


class Case(CamelModel):
    """Case aggregate"""
    case_id: str
    title: str
    description: str
    country: str
    case_type: CaseType = CaseType.CIVIL
    status: CaseStatus = CaseStatus.CREATED
    side_a: CaseSide = Field(default_factory=CaseSide)
    side_b: CaseSide = Field(default_factory=CaseSide)
    verdict: Optional[Verdict] = None
    arguments: List[Argument] = Field(default_factory=list)
    metadata: CaseMetadata = Field(default_factory=CaseMetadata)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def side(self, side: Side) -> CaseSide:
        return self.side_a if side is Side.A else self.side_b

    def arguments_for(self, side: Side) -> List[Argument]:
        return [arg for arg in self.arguments if arg.side is side]

    def computed_status(self) -> CaseStatus:
        return derive_status(self.side_a, self.side_b, self.verdict, self.arguments)


class CaseSummary(CamelModel):
    """List/search projection without document and argument bodies"""
    case_id: str
    title: str
    status: CaseStatus
    country: str
    case_type: CaseType
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    has_verdict: bool = False
    total_arguments: int = 0
    last_activity: Optional[datetime] = None


class SearchCriteria(CamelModel):
    status: Optional[CaseStatus] = None
    country: Optional[str] = None
    case_type: Optional[CaseType] = None
    title: Optional[str] = None
    query: Optional[str] = None
    has_verdict: Optional[bool] = None


class CaseStatistics(CamelModel):
    total_cases: int = 0
    status_breakdown: Dict[str, int] = Field(default_factory=dict)
    country_breakdown: Dict[str, int] = Field(default_factory=dict)
    type_breakdown: Dict[str, int] = Field(default_factory=dict)
    average_arguments_per_case: float = 0.0
    cases_with_verdict: int = 0
    recent_activity: List[CaseSummary] = Field(default_factory=list)


# =============================================================================
# Requests / Results
# =============================================================================

class CreateCaseRequest(CamelModel):
    """Create case request (required fields are validated by the workflow)"""
    title: Optional[str] = None
    description: Optional[str] = None
    country: Optional[str] = None
    case_type: Optional[str] = None


class ArgumentRequest(CamelModel):
    side: Optional[str] = None
    argument: Optional[str] = None


class DocumentSummary(CamelModel):
    filename: str
    size: int
    text_length: int


class AttachDocumentsResult(CamelModel):
    case_id: str
    side: Side
    documents_processed: int
    documents: List[DocumentSummary]


class ArgumentResult(CamelModel):
    case_id: str
    side: Side
    argument_number: int
    argument: str
    ai_response: ArgumentResponse
    remaining_arguments: int


class HealthResponse(CamelModel):
    status: str = "OK"
    message: str = "AI Judge Server is running"
    version: str
    llm_mode: LLMMode
    llm_configured: bool
    warnings: List[str] = Field(default_factory=list)


# =============================================================================
# Events
# =============================================================================

class VerdictRenderedEvent(CamelModel):
    type: EventType = EventType.VERDICT_RENDERED
    case_id: str
    verdict: Verdict


class ArgumentAddedEvent(CamelModel):
    type: EventType = EventType.ARGUMENT_ADDED
    case_id: str
    side: Side
    argument: str
    ai_response: ArgumentResponse
    argument_number: int
