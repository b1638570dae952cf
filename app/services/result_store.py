"""
Result Store
Prescription Scanner

Append-only list of stored prescription records behind one
initialize/list/append contract. Backings:

- ``InMemoryResultStore``  - process memory (tests)
- ``JsonFileResultStore``  - one JSON array file, read and rewritten in full
- ``DatabaseResultStore``  - async SQLAlchemy table

Appends on one store instance are serialized with an asyncio.Lock and ids
never repeat within a process. Separate processes writing the same JSON
file are not coordinated: the last writer wins.
"""

import abc
import asyncio
import json
import logging
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, List, Union

from pydantic import ValidationError
from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError

from app.core.config import Settings
from app.core.exceptions import StoreCorruptError, StoreIOError
from app.database.session import create_engine, create_session_factory, init_db
from app.models.prescription import PrescriptionRecord
from app.schemas.prescription import StoredPrescriptionRecord

logger = logging.getLogger(__name__)


def utc_timestamp() -> str:
    """Current UTC time as ISO-8601 with milliseconds and a Z suffix."""
    now = datetime.now(timezone.utc)
    return now.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def next_record_id(last_id: int) -> int:
    """Millisecond epoch, bumped past ``last_id`` when the clock has not moved."""
    return max(int(time.time() * 1000), last_id + 1)


class ResultStore(abc.ABC):
    """Contract shared by every result store backing."""

    def __init__(self):
        self._lock = asyncio.Lock()

    @abc.abstractmethod
    async def initialize(self) -> None:
        """Create the backing if absent. Safe to call on every start."""

    @abc.abstractmethod
    async def list(self) -> List[StoredPrescriptionRecord]:
        """All records in append order."""

    @abc.abstractmethod
    async def _append(self, payload: Any) -> StoredPrescriptionRecord:
        ...

    async def append(self, payload: Any) -> StoredPrescriptionRecord:
        async with self._lock:
            record = await self._append(payload)
        logger.info("Stored prescription record %s", record.id)
        return record

    async def close(self) -> None:
        pass


# ── In-memory ─────────────────────────────────────────────────────
class InMemoryResultStore(ResultStore):
    def __init__(self):
        super().__init__()
        self._records: List[StoredPrescriptionRecord] = []

    async def initialize(self) -> None:
        pass

    async def list(self) -> List[StoredPrescriptionRecord]:
        return list(self._records)

    async def _append(self, payload: Any) -> StoredPrescriptionRecord:
        last_id = self._records[-1].id if self._records else 0
        record = StoredPrescriptionRecord(
            id=next_record_id(last_id),
            data=payload,
            created_at=utc_timestamp(),
        )
        self._records.append(record)
        return record


# ── JSON file ─────────────────────────────────────────────────────
class JsonFileResultStore(ResultStore):
    """The whole store is one JSON array on disk."""

    def __init__(self, path: Union[str, Path]):
        super().__init__()
        self.path = Path(path)

    async def initialize(self) -> None:
        if self.path.exists():
            return
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text("[]", encoding="utf-8")
        except OSError as e:
            raise StoreIOError(f"Failed to initialize result store {self.path}: {e}") from e
        logger.info("Initialized empty result store at %s", self.path)

    def _read_raw(self) -> List[dict]:
        try:
            content = self.path.read_text(encoding="utf-8")
        except OSError as e:
            raise StoreIOError(f"Failed to read result store {self.path}: {e}") from e
        try:
            records = json.loads(content)
        except json.JSONDecodeError as e:
            raise StoreCorruptError(f"Result store {self.path} is not valid JSON: {e}") from e
        if not isinstance(records, list):
            raise StoreCorruptError(f"Result store {self.path} does not contain a JSON array")
        for record in records:
            record_id = record.get("id") if isinstance(record, dict) else None
            if not isinstance(record_id, int) or isinstance(record_id, bool):
                raise StoreCorruptError(f"Result store {self.path} holds a record without an integer id")
        return records

    async def list(self) -> List[StoredPrescriptionRecord]:
        records = self._read_raw()
        try:
            return [StoredPrescriptionRecord.model_validate(r) for r in records]
        except ValidationError as e:
            raise StoreCorruptError(f"Result store {self.path} holds a malformed record: {e}") from e

    async def _append(self, payload: Any) -> StoredPrescriptionRecord:
        records = self._read_raw()
        last_id = max((r["id"] for r in records), default=0)
        record = StoredPrescriptionRecord(
            id=next_record_id(last_id),
            data=payload,
            created_at=utc_timestamp(),
        )
        records.append(record.model_dump(mode="json"))
        try:
            self.path.write_text(json.dumps(records, indent=2, ensure_ascii=False), encoding="utf-8")
        except OSError as e:
            raise StoreIOError(f"Failed to write result store {self.path}: {e}") from e
        return record


# ── Database ──────────────────────────────────────────────────────
class DatabaseResultStore(ResultStore):
    def __init__(self, database_url: str, echo: bool = False):
        super().__init__()
        self._engine = create_engine(database_url, echo=echo)
        self._sessions = create_session_factory(self._engine)

    async def initialize(self) -> None:
        try:
            await init_db(self._engine)
        except SQLAlchemyError as e:
            raise StoreIOError(f"Failed to initialize result store table: {e}") from e

    async def list(self) -> List[StoredPrescriptionRecord]:
        try:
            async with self._sessions() as session:
                rows = await session.scalars(
                    select(PrescriptionRecord).order_by(PrescriptionRecord.id)
                )
                return [
                    StoredPrescriptionRecord(id=row.id, data=row.data, created_at=row.created_at)
                    for row in rows
                ]
        except SQLAlchemyError as e:
            raise StoreIOError(f"Failed to read result store: {e}") from e

    async def _append(self, payload: Any) -> StoredPrescriptionRecord:
        try:
            async with self._sessions() as session:
                last_id = await session.scalar(select(func.max(PrescriptionRecord.id)))
                row = PrescriptionRecord(
                    id=next_record_id(last_id or 0),
                    data=payload,
                    created_at=utc_timestamp(),
                )
                session.add(row)
                await session.commit()
                return StoredPrescriptionRecord(id=row.id, data=row.data, created_at=row.created_at)
        except SQLAlchemyError as e:
            raise StoreIOError(f"Failed to write result store: {e}") from e

    async def close(self) -> None:
        await self._engine.dispose()


def build_result_store(config: Settings) -> ResultStore:
    """Pick the backing named by ``store_backend``."""
    if config.store_backend == "memory":
        return InMemoryResultStore()
    if config.store_backend == "database":
        return DatabaseResultStore(config.database_url, echo=config.debug)
    return JsonFileResultStore(config.store_file)
