"""
Error Taxonomy
==============

Every failure the workflow reports to a caller is an AdjudicationError.
The HTTP layer maps `status_code` and `code` straight into the response,
so subclasses only need to pick the right category.

Parsing failures of reasoning-engine output have no error type:
those degrade to a fallback result inside the orchestrator.
"""

from typing import Any, Dict, List, Optional


class AdjudicationError(Exception):
    """Base exception for all workflow errors"""

    status_code = 500
    code = "internal_error"

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        user_message: Optional[str] = None,
    ):
        super().__init__(message)
        if code:
            self.code = code
        self.user_message = user_message or message

    def to_dict(self) -> Dict[str, Any]:
        return {"error": self.user_message, "code": self.code}


# =============================================================================
# Caller errors
# =============================================================================

class ValidationError(AdjudicationError):
    """Missing or invalid input, surfaced verbatim"""
    status_code = 400
    code = "validation_error"


class NotFound(AdjudicationError):
    status_code = 404
    code = "not_found"


class CaseNotFound(NotFound):
    code = "case_not_found"

    def __init__(self, case_id: str):
        super().__init__(f"Case not found: {case_id}", user_message="Case not found")
        self.case_id = case_id


# =============================================================================
# Workflow preconditions
# =============================================================================

class PreconditionFailed(AdjudicationError):
    status_code = 400
    code = "precondition_failed"


class DocumentsIncomplete(PreconditionFailed):
    code = "documents_incomplete"

    def __init__(self, case_id: str):
        super().__init__(
            f"Case {case_id} is missing documents on at least one side",
            user_message="Both sides must submit documents before judgment can be rendered",
        )


class JudgmentRequired(PreconditionFailed):
    code = "judgment_required"

    def __init__(self, case_id: str):
        super().__init__(
            f"Case {case_id} has no verdict yet",
            user_message="Initial verdict must be rendered before arguments can be submitted",
        )


class ArgumentQuotaExceeded(PreconditionFailed):
    code = "argument_quota_exceeded"

    def __init__(self, case_id: str, side: str, limit: int):
        super().__init__(
            f"Side {side} of case {case_id} already used {limit} arguments",
            user_message=f"Maximum number of arguments ({limit}) reached for this side",
        )
        self.side = side
        self.limit = limit


# =============================================================================
# Document errors
# =============================================================================

class DocumentError(AdjudicationError):
    """Base for document intake failures"""
    status_code = 422
    code = "document_error"


class UnsupportedMediaType(DocumentError):
    status_code = 415
    code = "unsupported_media_type"

    def __init__(self, media_type: str):
        super().__init__(
            f"Unsupported file type: {media_type}",
            user_message="Invalid file type. Only PDF, DOC, DOCX, and TXT files are allowed.",
        )
        self.media_type = media_type


class EmptyContent(DocumentError):
    code = "empty_content"


class ExtractionError(DocumentError):
    """Parser failed on a file of a supported type"""
    code = "extraction_failed"


class UploadLimitExceeded(DocumentError):
    status_code = 413
    code = "upload_limit_exceeded"


class DocumentBatchError(DocumentError):
    """One or more files in a multi-file upload failed; nothing was committed"""
    code = "document_batch_failed"

    def __init__(self, failures: List[Dict[str, str]]):
        names = ", ".join(f["filename"] for f in failures)
        super().__init__(
            f"Failed to process {len(failures)} document(s): {names}",
        )
        self.failures = failures

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["failedFiles"] = self.failures
        return data


# =============================================================================
# External dependencies
# =============================================================================

class ReasoningEngineUnavailable(AdjudicationError):
    status_code = 503
    code = "reasoning_engine_unavailable"


class ReasoningEngineError(AdjudicationError):
    status_code = 502
    code = "reasoning_engine_error"


class StorageError(AdjudicationError):
    status_code = 500
    code = "storage_error"
