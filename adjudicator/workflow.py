"""
Case Workflow
=============

Policy layer over CaseStore and AdjudicationOrchestrator:

    create_case -> attach_documents (A, B) -> render_verdict -> submit_argument x N

Decides which transitions are legal, enforces the per-side argument quota
and publishes events after successful transitions only.

Mutations of one case are serialized by a per-case asyncio.Lock; blocking
work (database, text extraction, file writes) runs in worker threads so
unrelated cases never wait on each other.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import List, Optional, Union

from .config import Settings
from .errors import (
    AdjudicationError,
    ArgumentQuotaExceeded,
    CaseNotFound,
    DocumentBatchError,
    DocumentError,
    JudgmentRequired,
    UploadLimitExceeded,
    ValidationError,
)
from .ingest import TextExtractor
from .notifications import NotificationBus
from .orchestrator import AdjudicationOrchestrator
from .schemas import (
    ArgumentAddedEvent,
    ArgumentResult,
    AttachDocumentsResult,
    Case,
    CaseStatistics,
    CaseSummary,
    CaseType,
    Document,
    DocumentSummary,
    SearchCriteria,
    Side,
    Verdict,
    VerdictRenderedEvent,
)
from .storage import LocalStorage
from .store import CaseStore, KeyedLocks

logger = logging.getLogger(__name__)


@dataclass
class UploadedFile:
    """A fully buffered upload"""
    filename: str
    data: bytes
    content_type: Optional[str] = None

    @property
    def size(self) -> int:
        return len(self.data)


def parse_side(value: Union[str, Side, None]) -> Side:
    if isinstance(value, Side):
        return value
    normalized = (value or "").strip().upper()
    if normalized not in (Side.A.value, Side.B.value):
        raise ValidationError(f"Invalid side: {value!r}", user_message="Side must be either A or B")
    return Side(normalized)


def parse_case_type(value: Union[str, CaseType, None]) -> CaseType:
    if value is None or value == "":
        return CaseType.CIVIL
    if isinstance(value, CaseType):
        return value
    try:
        return CaseType(value.strip().lower())
    except ValueError:
        allowed = ", ".join(t.value for t in CaseType)
        raise ValidationError(
            f"Invalid case type: {value!r}",
            user_message=f"Case type must be one of: {allowed}",
        )


def _format_size(size_bytes: int) -> str:
    if size_bytes >= 1024 * 1024:
        return f"{size_bytes // (1024 * 1024)}MB"
    return f"{size_bytes} bytes"


class CaseWorkflow:
    """
    Case lifecycle operations.

    Usage:
        workflow = CaseWorkflow(store, orchestrator, TextExtractor(), settings=settings)
        case = await workflow.create_case("Smith v. Jones", "Contract dispute", "United States")
    """

    def __init__(
        self,
        store: CaseStore,
        orchestrator: AdjudicationOrchestrator,
        extractor: TextExtractor,
        storage: Optional[LocalStorage] = None,
        bus: Optional[NotificationBus] = None,
        settings: Optional[Settings] = None,
    ):
        self.store = store
        self.orchestrator = orchestrator
        self.extractor = extractor
        self.storage = storage
        self.bus = bus
        self.settings = settings or Settings()
        self._case_locks = KeyedLocks(asyncio.Lock)

    @property
    def max_arguments_per_side(self) -> int:
        return self.settings.max_arguments_per_side

    async def _require_case(self, case_id: str) -> Case:
        case = await asyncio.to_thread(self.store.get, case_id)
        if case is None:
            raise CaseNotFound(case_id)
        return case

    def _publish(self, event):
        if self.bus is not None:
            self.bus.publish(event)

    # =========================================================================
    # Cases
    # =========================================================================

    async def create_case(
        self,
        title: Optional[str],
        description: Optional[str],
        country: Optional[str],
        case_type: Union[str, CaseType, None] = None,
    ) -> Case:
        title = (title or "").strip()
        description = (description or "").strip()
        country = (country or "").strip()
        if not (title and description and country):
            raise ValidationError("Title, description, and country are required")

        return await asyncio.to_thread(
            self.store.create, title, description, country, parse_case_type(case_type)
        )

    async def get_case(self, case_id: str) -> Case:
        return await self._require_case(case_id)

    async def list_cases(self) -> List[CaseSummary]:
        return await asyncio.to_thread(self.store.list)

    async def search_cases(self, criteria: SearchCriteria) -> List[CaseSummary]:
        return await asyncio.to_thread(self.store.search, criteria)

    async def get_statistics(self) -> CaseStatistics:
        return await asyncio.to_thread(self.store.statistics)

    async def _delete_originals(self, paths: List[str]):
        """Best-effort removal of stored originals"""
        if self.storage is None:
            return
        for path in paths:
            try:
                await asyncio.to_thread(self.storage.delete, path)
            except AdjudicationError as e:
                logger.warning(f"Failed to delete stored file {path}: {e}")

    async def delete_case(self, case_id: str) -> bool:
        async with self._case_locks.hold_async(case_id):
            case = await asyncio.to_thread(self.store.get, case_id)
            deleted = await asyncio.to_thread(self.store.delete, case_id)

        if deleted and case is not None:
            await self._delete_originals(
                [doc.path for doc in case.side_a.documents + case.side_b.documents if doc.path]
            )

        return deleted

    async def summarize_case(self, case_id: str) -> str:
        case = await self._require_case(case_id)
        return await self.orchestrator.summarize_case(case)

    # =========================================================================
    # Documents
    # =========================================================================

    def _check_upload_limits(self, files: List[UploadedFile]):
        if not files:
            raise ValidationError("No files uploaded")

        max_files = self.settings.max_files_per_upload
        if len(files) > max_files:
            raise UploadLimitExceeded(
                f"{len(files)} files exceed the limit of {max_files}",
                user_message=f"Too many files. Maximum is {max_files} files per upload.",
            )

        max_size = self.settings.max_file_size
        for f in files:
            if f.size > max_size:
                raise UploadLimitExceeded(
                    f"{f.filename} is {f.size} bytes, limit is {max_size}",
                    user_message=f"File too large. Maximum size is {_format_size(max_size)}.",
                )

    async def _extract_all(self, files: List[UploadedFile]) -> List[tuple]:
        """Extract every file before anything is written; all-or-nothing"""
        extracted = []
        failures = []
        last_error: Optional[DocumentError] = None

        for f in files:
            media_type = self.extractor.resolve_media_type(f.content_type, f.filename, f.data)
            try:
                text = await asyncio.to_thread(self.extractor.extract, f.data, media_type, f.filename)
            except DocumentError as e:
                logger.warning(f"Extraction failed for {f.filename} ({media_type}): {e}")
                failures.append({"filename": f.filename, "error": e.user_message, "code": e.code})
                last_error = e
                continue
            extracted.append((f, media_type, text))

        if failures:
            if len(files) == 1:
                raise last_error
            raise DocumentBatchError(failures)

        return extracted

    async def _store_original(self, case_id: str, side: Side, f: UploadedFile, media_type: str) -> dict:
        if self.storage is None:
            return {"path": None, "file_url": None, "uploaded_to_cloud": False}

        key = self.storage.generate_key(case_id, side, f.filename)
        try:
            meta = await asyncio.to_thread(self.storage.put, key, f.data, media_type)
        except AdjudicationError as e:
            logger.warning(f"Keeping {f.filename} without stored original: {e}")
            return {"path": None, "file_url": None, "uploaded_to_cloud": False}

        return {"path": meta.path, "file_url": meta.url, "uploaded_to_cloud": True}

    async def attach_documents(
        self,
        case_id: Optional[str],
        side: Union[str, Side],
        description: Optional[str],
        files: List[UploadedFile],
    ) -> AttachDocumentsResult:
        """
        Replace one side's description and documents.

        Every file is extracted first; if any fails nothing is written and
        the caller gets the failing files. A failed write of the raw
        original is logged and the document is kept with uploadedToCloud=false.
        Originals written for an attach that does not commit are removed, and
        so are the replaced documents' originals once the new ones commit.
        """
        case_id = (case_id or "").strip()
        if not case_id:
            raise ValidationError("caseId is required")
        side = parse_side(side)
        self._check_upload_limits(files)

        create_missing = self.settings.auto_create_cases_on_upload
        if not create_missing:
            await self._require_case(case_id)

        extracted = await self._extract_all(files)

        documents = []
        previous = None
        committed = False
        try:
            for f, media_type, text in extracted:
                stored = await self._store_original(case_id, side, f, media_type)
                documents.append(Document(
                    filename=f.filename,
                    mimetype=media_type,
                    size=f.size,
                    extracted_text=text.text,
                    **stored,
                ))

            async with self._case_locks.hold_async(case_id):
                previous = await asyncio.to_thread(self.store.get, case_id)
                case = await asyncio.to_thread(
                    self.store.attach_side_documents,
                    case_id,
                    side,
                    description,
                    documents,
                    create_missing,
                )
            committed = True
        finally:
            if not committed:
                await self._delete_originals([d.path for d in documents if d.path])

        if previous is not None:
            await self._delete_originals([d.path for d in previous.side(side).documents if d.path])

        return AttachDocumentsResult(
            case_id=case.case_id,
            side=side,
            documents_processed=len(documents),
            documents=[
                DocumentSummary(filename=d.filename, size=d.size, text_length=len(d.extracted_text))
                for d in documents
            ],
        )

    # =========================================================================
    # Adjudication
    # =========================================================================

    async def render_verdict(self, case_id: str) -> Verdict:
        async with self._case_locks.hold_async(case_id):
            case = await self._require_case(case_id)
            verdict = await self.orchestrator.render_verdict(case)
            await asyncio.to_thread(self.store.record_verdict, case_id, verdict)

        self._publish(VerdictRenderedEvent(case_id=case_id, verdict=verdict))
        return verdict

    async def submit_argument(
        self,
        case_id: str,
        side: Union[str, Side, None],
        argument: Optional[str],
    ) -> ArgumentResult:
        argument = (argument or "").strip()
        if not side or not argument:
            raise ValidationError("Side and argument are required")
        side = parse_side(side)
        limit = self.max_arguments_per_side

        async with self._case_locks.hold_async(case_id):
            case = await self._require_case(case_id)
            if case.verdict is None:
                raise JudgmentRequired(case_id)
            if len(case.arguments_for(side)) >= limit:
                raise ArgumentQuotaExceeded(case_id, side.value, limit)

            ai_response = await self.orchestrator.respond_to_argument(case, side, argument)
            case, recorded = await asyncio.to_thread(
                self.store.append_argument, case_id, side, argument, ai_response, limit
            )

        self._publish(ArgumentAddedEvent(
            case_id=case_id,
            side=side,
            argument=recorded.argument,
            ai_response=recorded.ai_response,
            argument_number=recorded.argument_number,
        ))

        return ArgumentResult(
            case_id=case_id,
            side=side,
            argument_number=recorded.argument_number,
            argument=recorded.argument,
            ai_response=recorded.ai_response,
            remaining_arguments=limit - len(case.arguments_for(side)),
        )
