"""
Collaborator interfaces and an in-memory implementation.

The engine never talks to a data store directly: raw records come from a
RecordsProvider and follow-up changes go through a MutationAPI. Both may
raise; the engine converts failures into state.
"""

import asyncio
import json
import logging
import uuid
from dataclasses import replace
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, Protocol, runtime_checkable

from principal_activity.models import ActivityRecord, PrincipalSummary

logger = logging.getLogger(__name__)


@runtime_checkable
class RecordsProvider(Protocol):
    """Source of raw snapshots. None means every principal."""

    async def fetch_timeline(self, principal_ids: list[str] | None) -> list[ActivityRecord]: ...

    async def fetch_summaries(self, principal_ids: list[str] | None) -> list[PrincipalSummary]: ...


@runtime_checkable
class MutationAPI(Protocol):
    """Write side for timeline entries. Each call returns the stored entry."""

    async def add_entry(self, entry: ActivityRecord) -> ActivityRecord: ...

    async def update_entry(self, entry_id: str, changes: dict[str, Any]) -> ActivityRecord: ...

    async def delete_entry(self, entry_id: str) -> None: ...

    async def mark_for_follow_up(
        self, entry_id: str, follow_up_date: datetime, notes: str | None = None
    ) -> ActivityRecord: ...

    async def complete_follow_up(self, entry_id: str, notes: str | None = None) -> ActivityRecord: ...


def _with_notes(details: str, notes: str | None, suffix: str) -> str:
    if not notes:
        return details
    return f"{notes}\n\n{suffix}"


class InMemoryProvider:
    """
    RecordsProvider and MutationAPI over plain lists.

    Used by the CLI (loaded from a JSON snapshot) and by tests. ``latency``
    adds an await before every call; ``fail_with`` makes every call raise it.
    """

    def __init__(
        self,
        records: list[ActivityRecord] | None = None,
        summaries: list[PrincipalSummary] | None = None,
        latency: float = 0.0,
    ):
        self.records: list[ActivityRecord] = list(records or [])
        self.summaries: list[PrincipalSummary] = list(summaries or [])
        self.latency = latency
        self.fail_with: Exception | None = None
        self.fetch_calls = 0
        self.mutation_calls = 0

    @classmethod
    def from_snapshot(cls, path: str | Path) -> "InMemoryProvider":
        """
        Load a snapshot file of the form
        {"timeline": [...entries...], "summaries": [...summaries...]}.
        """
        with open(path) as f:
            data = json.load(f)
        records = [ActivityRecord.from_dict(r) for r in data.get("timeline", [])]
        summaries = [PrincipalSummary.from_dict(s) for s in data.get("summaries", [])]
        logger.info(f"Loaded snapshot {path}: {len(records)} entries, {len(summaries)} summaries")
        return cls(records, summaries)

    async def _call(self) -> None:
        if self.latency:
            await asyncio.sleep(self.latency)
        if self.fail_with is not None:
            raise self.fail_with

    # ---------------------------------------------------------------- reads

    async def fetch_timeline(self, principal_ids: list[str] | None) -> list[ActivityRecord]:
        self.fetch_calls += 1
        await self._call()
        if principal_ids is None:
            return list(self.records)
        wanted = set(principal_ids)
        return [r for r in self.records if r.principal_id in wanted]

    async def fetch_summaries(self, principal_ids: list[str] | None) -> list[PrincipalSummary]:
        await self._call()
        if principal_ids is None:
            return list(self.summaries)
        wanted = set(principal_ids)
        return [s for s in self.summaries if s.principal_id in wanted]

    # -------------------------------------------------------------- writes

    def _index(self, entry_id: str) -> int:
        for i, record in enumerate(self.records):
            if record.entry_id == entry_id:
                return i
        raise KeyError(f"Timeline entry not found: {entry_id}")

    def _store(self, index: int, record: ActivityRecord) -> ActivityRecord:
        record = record.normalized()
        self.records[index] = record
        return record

    async def add_entry(self, entry: ActivityRecord) -> ActivityRecord:
        self.mutation_calls += 1
        await self._call()
        next_rank = max((r.timeline_rank for r in self.records), default=0) + 1
        stored = replace(
            entry,
            source_id=entry.source_id or uuid.uuid4().hex,
            timeline_rank=next_rank,
        ).normalized()
        self.records.append(stored)
        return stored

    async def update_entry(self, entry_id: str, changes: dict[str, Any]) -> ActivityRecord:
        self.mutation_calls += 1
        await self._call()
        index = self._index(entry_id)
        merged = {**self.records[index].to_dict(), **changes}
        return self._store(index, ActivityRecord.from_dict(merged))

    async def delete_entry(self, entry_id: str) -> None:
        self.mutation_calls += 1
        await self._call()
        del self.records[self._index(entry_id)]

    async def mark_for_follow_up(
        self, entry_id: str, follow_up_date: datetime, notes: str | None = None
    ) -> ActivityRecord:
        self.mutation_calls += 1
        await self._call()
        index = self._index(entry_id)
        current = self.records[index]
        return self._store(
            index,
            replace(
                current,
                follow_up_required=True,
                follow_up_date=follow_up_date,
                activity_details=_with_notes(
                    current.activity_details,
                    notes,
                    f"Follow-up scheduled for {follow_up_date.date().isoformat()}",
                ),
            ),
        )

    async def complete_follow_up(self, entry_id: str, notes: str | None = None) -> ActivityRecord:
        self.mutation_calls += 1
        await self._call()
        index = self._index(entry_id)
        current = self.records[index]
        return self._store(
            index,
            replace(
                current,
                follow_up_required=False,
                follow_up_date=None,
                activity_status="completed",
                activity_details=_with_notes(
                    current.activity_details,
                    notes,
                    f"Follow-up completed on {datetime.now(UTC).date().isoformat()}",
                ),
            ),
        )
