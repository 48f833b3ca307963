"""
Case Store
==========

Owns case records. Every mutation runs under a per-case lock and inside a
single database transaction, so concurrent writes to one case never lose
an update. Status and argument counters are recomputed from the record's
data on every write; they are never incremented blindly.
"""

import logging
import secrets
import threading
import time
from collections import Counter
from contextlib import asynccontextmanager, contextmanager
from datetime import datetime, timedelta
from typing import Dict, List, Optional, Tuple

from sqlalchemy import or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .db import CaseRecord, Database
from .errors import (
    ArgumentQuotaExceeded,
    CaseNotFound,
    DocumentsIncomplete,
    JudgmentRequired,
    StorageError,
)
from .schemas import (
    Argument,
    ArgumentResponse,
    Case,
    CaseMetadata,
    CaseSide,
    CaseStatistics,
    CaseSummary,
    CaseType,
    Document,
    SearchCriteria,
    Side,
    Verdict,
)

logger = logging.getLogger(__name__)

PLACEHOLDER_COUNTRY = "United States"
RECENT_ACTIVITY_LIMIT = 5


def generate_case_id() -> str:
    return f"case_{secrets.token_hex(8)}_{int(time.time() * 1000)}"


class KeyedLocks:
    """
    One lock per key, created on first use.

    An entry lives only while someone holds or waits on its lock, so keys
    that are never touched again (deleted or unknown cases) do not pile up.

    Usage:
        with locks.hold(case_id): ...
        async with locks.hold_async(case_id): ...   # factory=asyncio.Lock
    """

    def __init__(self, factory=threading.Lock):
        self._factory = factory
        self._guard = threading.Lock()
        self._entries: Dict[str, list] = {}  # key -> [lock, users]

    def __len__(self) -> int:
        with self._guard:
            return len(self._entries)

    def _checkout(self, key: str):
        with self._guard:
            entry = self._entries.get(key)
            if entry is None:
                entry = self._entries[key] = [self._factory(), 0]
            entry[1] += 1
            return entry[0]

    def _checkin(self, key: str):
        with self._guard:
            entry = self._entries[key]
            entry[1] -= 1
            if entry[1] == 0:
                del self._entries[key]

    @contextmanager
    def hold(self, key: str):
        lock = self._checkout(key)
        try:
            with lock:
                yield
        finally:
            self._checkin(key)

    @asynccontextmanager
    async def hold_async(self, key: str):
        lock = self._checkout(key)
        try:
            async with lock:
                yield
        finally:
            self._checkin(key)


def _count_arguments(arguments: List[dict]) -> Dict[str, int]:
    by_side = Counter(arg.get("side") for arg in arguments)
    return {
        "totalArguments": len(arguments),
        "sideAArguments": by_side.get(Side.A.value, 0),
        "sideBArguments": by_side.get(Side.B.value, 0),
    }


class CaseStore:
    """
    Case persistence keyed by caseId.

    Usage:
        store = CaseStore(Database("sqlite:///./adjudicator.db"))
        case = store.create("Smith v. Jones", "Contract dispute", "United States")
    """

    def __init__(self, database: Database):
        self.database = database
        self._locks = KeyedLocks()

    # =========================================================================
    # Helpers
    # =========================================================================

    @contextmanager
    def _session(self, action: str):
        try:
            with self.database.session() as session:
                yield session
        except SQLAlchemyError as e:
            logger.error(f"Storage error while {action}: {e}")
            raise StorageError(f"Error {action}: {e}") from e

    @staticmethod
    def _load(session: Session, case_id: str, for_update: bool = False) -> Optional[CaseRecord]:
        query = session.query(CaseRecord).filter(CaseRecord.case_id == case_id)
        if for_update:
            query = query.with_for_update()
        return query.one_or_none()

    @staticmethod
    def _to_case(record: CaseRecord) -> Case:
        counters = record.counters or {}
        case = Case(
            case_id=record.case_id,
            title=record.title,
            description=record.description,
            country=record.country,
            case_type=CaseType(record.case_type),
            side_a=CaseSide.model_validate(record.side_a or {}),
            side_b=CaseSide.model_validate(record.side_b or {}),
            verdict=Verdict.model_validate(record.verdict) if record.verdict else None,
            arguments=[Argument.model_validate(a) for a in (record.arguments or [])],
            metadata=CaseMetadata(
                total_arguments=counters.get("totalArguments", 0),
                side_a_arguments=counters.get("sideAArguments", 0),
                side_b_arguments=counters.get("sideBArguments", 0),
                last_activity=record.last_activity,
            ),
            created_at=record.created_at,
            updated_at=record.updated_at,
        )
        case.status = case.computed_status()
        return case

    @staticmethod
    def _new_record(
        case_id: str,
        title: str,
        description: str,
        country: str,
        case_type: CaseType,
    ) -> CaseRecord:
        now = datetime.utcnow()
        return CaseRecord(
            case_id=case_id,
            title=title,
            description=description,
            country=country,
            case_type=case_type.value,
            status="created",
            side_a=CaseSide().to_json_dict(),
            side_b=CaseSide().to_json_dict(),
            verdict=None,
            arguments=[],
            counters=_count_arguments([]),
            last_activity=now,
            created_at=now,
            updated_at=now,
        )

    @staticmethod
    def _commit_derived(record: CaseRecord, now: datetime) -> Case:
        """Refresh last activity and the status mirror, return the domain view"""
        record.last_activity = now
        record.updated_at = now
        case = CaseStore._to_case(record)
        record.status = case.status.value
        return case

    @staticmethod
    def _to_summary(record: CaseRecord) -> CaseSummary:
        counters = record.counters or {}
        return CaseSummary(
            case_id=record.case_id,
            title=record.title,
            status=record.status,
            country=record.country,
            case_type=record.case_type,
            created_at=record.created_at,
            updated_at=record.updated_at,
            has_verdict=record.verdict is not None,
            total_arguments=counters.get("totalArguments", 0),
            last_activity=record.last_activity or record.updated_at,
        )

    # =========================================================================
    # Operations
    # =========================================================================

    def create(
        self,
        title: str,
        description: str,
        country: str,
        case_type: CaseType = CaseType.CIVIL,
    ) -> Case:
        """Create a case with a fresh id"""
        case_id = generate_case_id()
        with self._session("creating case") as session:
            record = self._new_record(case_id, title, description, country, case_type)
            session.add(record)
            session.flush()
            case = self._to_case(record)

        logger.info(f"Created case {case_id} ({case_type.value}, {country})")
        return case

    def get(self, case_id: str) -> Optional[Case]:
        with self._session(f"loading case {case_id}") as session:
            record = self._load(session, case_id)
            return self._to_case(record) if record else None

    def attach_side_documents(
        self,
        case_id: str,
        side: Side,
        description: Optional[str],
        documents: List[Document],
        create_missing: bool = False,
    ) -> Case:
        """
        Replace one side's description and documents in a single update.

        With create_missing=True an unknown case_id gets a placeholder case
        under that id instead of failing with CaseNotFound.
        """
        with self._locks.hold(case_id):
            with self._session(f"attaching documents to case {case_id}") as session:
                record = self._load(session, case_id, for_update=True)
                if record is None:
                    if not create_missing:
                        raise CaseNotFound(case_id)
                    logger.warning(f"Auto-creating placeholder case {case_id} from document upload")
                    record = self._new_record(
                        case_id,
                        f"Case {case_id}",
                        "Auto-created case from document upload",
                        PLACEHOLDER_COUNTRY,
                        CaseType.CIVIL,
                    )
                    session.add(record)

                now = datetime.utcnow()
                side_data = CaseSide(
                    description=description,
                    documents=documents,
                    uploaded_at=now,
                ).to_json_dict()
                if side is Side.A:
                    record.side_a = side_data
                else:
                    record.side_b = side_data

                case = self._commit_derived(record, now)

        logger.info(f"Case {case_id}: side {side.value} now has {len(documents)} document(s), status={case.status.value}")
        return case

    def record_verdict(self, case_id: str, verdict: Verdict) -> Case:
        """Set the case verdict, replacing any previous one"""
        with self._locks.hold(case_id):
            with self._session(f"recording verdict for case {case_id}") as session:
                record = self._load(session, case_id, for_update=True)
                if record is None:
                    raise CaseNotFound(case_id)

                current = self._to_case(record)
                if not (current.side_a.has_documents and current.side_b.has_documents):
                    raise DocumentsIncomplete(case_id)

                record.verdict = verdict.to_json_dict()
                case = self._commit_derived(record, datetime.utcnow())

        logger.info(f"Case {case_id}: verdict recorded ({verdict.decision.value})")
        return case

    def append_argument(
        self,
        case_id: str,
        side: Side,
        argument_text: str,
        ai_response: ArgumentResponse,
        max_per_side: int,
    ) -> Tuple[Case, Argument]:
        """
        Append an argument and its response.

        The per-side number and the quota are decided here, under the case
        lock, so overlapping submissions cannot exceed the quota.
        """
        with self._locks.hold(case_id):
            with self._session(f"appending argument to case {case_id}") as session:
                record = self._load(session, case_id, for_update=True)
                if record is None:
                    raise CaseNotFound(case_id)

                current = self._to_case(record)
                if current.verdict is None:
                    raise JudgmentRequired(case_id)

                side_count = len(current.arguments_for(side))
                if side_count >= max_per_side:
                    raise ArgumentQuotaExceeded(case_id, side.value, max_per_side)

                existing_ids = {arg.id for arg in current.arguments}
                argument_id = secrets.token_hex(4)
                while argument_id in existing_ids:
                    argument_id = secrets.token_hex(4)

                # Always later than the verdict it answers
                now = max(datetime.utcnow(), current.verdict.timestamp + timedelta(microseconds=1))
                argument = Argument(
                    id=argument_id,
                    side=side,
                    argument=argument_text,
                    ai_response=ai_response,
                    timestamp=now,
                    argument_number=side_count + 1,
                )

                arguments = list(record.arguments or []) + [argument.to_json_dict()]
                record.arguments = arguments
                record.counters = _count_arguments(arguments)

                case = self._commit_derived(record, now)

        logger.info(
            f"Case {case_id}: argument {argument.argument_number} from side {side.value} "
            f"(total={case.metadata.total_arguments})"
        )
        return case, argument

    def delete(self, case_id: str) -> bool:
        with self._locks.hold(case_id):
            with self._session(f"deleting case {case_id}") as session:
                record = self._load(session, case_id, for_update=True)
                if record is None:
                    return False
                session.delete(record)

        logger.info(f"Deleted case {case_id}")
        return True

    def list(self) -> List[CaseSummary]:
        return self.search(SearchCriteria())

    def search(self, criteria: SearchCriteria) -> List[CaseSummary]:
        """Filter cases, most recently active first"""
        with self._session("searching cases") as session:
            query = session.query(CaseRecord)

            if criteria.status:
                query = query.filter(CaseRecord.status == criteria.status.value)
            if criteria.country:
                query = query.filter(CaseRecord.country.ilike(f"%{criteria.country}%"))
            if criteria.case_type:
                query = query.filter(CaseRecord.case_type == criteria.case_type.value)
            if criteria.title:
                query = query.filter(CaseRecord.title.ilike(f"%{criteria.title}%"))
            if criteria.query:
                pattern = f"%{criteria.query}%"
                query = query.filter(or_(
                    CaseRecord.title.ilike(pattern),
                    CaseRecord.description.ilike(pattern),
                ))
            if criteria.has_verdict is not None:
                if criteria.has_verdict:
                    query = query.filter(CaseRecord.verdict.isnot(None))
                else:
                    query = query.filter(CaseRecord.verdict.is_(None))

            records = query.order_by(CaseRecord.last_activity.desc(), CaseRecord.id.desc()).all()
            return [self._to_summary(record) for record in records]

    def statistics(self) -> CaseStatistics:
        """Aggregate counts over all cases"""
        cases = self.list()
        stats = CaseStatistics(
            total_cases=len(cases),
            recent_activity=cases[:RECENT_ACTIVITY_LIMIT],
        )

        total_arguments = 0
        for summary in cases:
            status = summary.status.value
            case_type = summary.case_type.value
            stats.status_breakdown[status] = stats.status_breakdown.get(status, 0) + 1
            stats.country_breakdown[summary.country] = stats.country_breakdown.get(summary.country, 0) + 1
            stats.type_breakdown[case_type] = stats.type_breakdown.get(case_type, 0) + 1
            total_arguments += summary.total_arguments
            if summary.has_verdict:
                stats.cases_with_verdict += 1

        if cases:
            stats.average_arguments_per_case = round(total_arguments / len(cases), 2)

        return stats
