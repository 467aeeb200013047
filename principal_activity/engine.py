"""
Timeline engine.

An explicit instance that owns the query model, snapshot cache, in-flight
fetch registry, search debouncer and auto-refresh task. Nothing here is
module-level: create one engine per view and call dispose() when done.

Concurrency model:
- Single event loop. Fetches and mutations are the only await points.
- At most one provider fetch per canonical query key.
- Each load takes a generation number; a fetch that completes after a newer
  load (or a mutation) started has its result discarded.
- Fetch failures are recorded in ``error`` and never raised from load();
  the previous view and cached snapshots stay intact.
- Mutations are confirmed by the MutationAPI before local state changes.
"""

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from principal_activity.analytics import PrincipalAnalytics, aggregate
from principal_activity.cache import CacheManager, InFlightRegistry
from principal_activity.config import EngineConfig
from principal_activity.debounce import Debouncer
from principal_activity.errors import (
    EngineDisposedError,
    EngineError,
    FetchError,
    MutationError,
)
from principal_activity.filtering import filter_summaries
from principal_activity.models import ActivityRecord, PrincipalSummary
from principal_activity.observability import RunContext
from principal_activity.pipeline import TimelineView, run_pipeline
from principal_activity.providers import MutationAPI, RecordsProvider
from principal_activity.query import CACHE_KEY_PREFIX, QueryModel

logger = logging.getLogger(__name__)


@dataclass
class Snapshot:
    """Raw records for one query key, as returned by the provider."""

    records: list[ActivityRecord] = field(default_factory=list)
    summaries: list[PrincipalSummary] = field(default_factory=list)
    fetched_at: datetime | None = None


class TimelineEngine:
    """Cached, filtered, paginated view over a principal activity timeline."""

    def __init__(
        self,
        provider: RecordsProvider,
        mutations: MutationAPI | None = None,
        config: EngineConfig | None = None,
        clock: Callable[[], float] = time.monotonic,
        now: Callable[[], datetime] | None = None,
    ):
        """
        Args:
            provider: Source of raw records and summaries
            mutations: Write API; defaults to the provider when it implements one
            config: Engine settings; read from the environment when omitted
            clock: Monotonic clock for cache freshness
            now: Wall clock for overdue and trend calculations
        """
        self.config = config or EngineConfig.from_env()
        self.provider = provider
        if mutations is None and isinstance(provider, MutationAPI):
            mutations = provider
        self.mutations = mutations
        self._now = now or (lambda: datetime.now(UTC))

        self.query = QueryModel(
            page_size=self.config.default_page_size,
            view_mode=self.config.view_mode,
            max_selections=self.config.max_selections,
        )
        self.cache = CacheManager(ttl_seconds=self.config.cache_ttl_seconds, clock=clock)
        self.inflight = InFlightRegistry()
        self._search = Debouncer(self.config.search_debounce_seconds, self._on_search_settled)

        # Observable state
        self.records: list[ActivityRecord] = []
        self.summaries: list[PrincipalSummary] = []
        self.view = TimelineView(view_mode=self.query.view_mode)
        self.analytics: PrincipalAnalytics | None = None
        self.error: EngineError | None = None
        self.is_loading = False
        self.last_updated: datetime | None = None
        self.scope: list[str] | None = None

        self._generation = 0
        self._loaded = False
        self._refresh_task: asyncio.Task | None = None
        self._background: set[asyncio.Task] = set()
        self._disposed = False

    # =================================================================
    # LIFECYCLE
    # =================================================================

    @property
    def disposed(self) -> bool:
        return self._disposed

    def _ensure_active(self) -> None:
        if self._disposed:
            raise EngineDisposedError("Engine has been disposed")

    def dispose(self) -> None:
        """Cancel every timer and task and drop cached snapshots. Idempotent."""
        if self._disposed:
            return
        self._disposed = True
        self.stop_auto_refresh()
        self._search.cancel()
        self.inflight.cancel_all()
        for task in list(self._background):
            task.cancel()
        self._background.clear()
        self.cache.clear()
        logger.debug("Timeline engine disposed")

    async def __aenter__(self) -> "TimelineEngine":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        self.dispose()

    def _spawn(self, coro: Awaitable[Any]) -> asyncio.Task:
        task = asyncio.ensure_future(coro)
        self._background.add(task)
        task.add_done_callback(self._background.discard)
        return task

    # =================================================================
    # LOADING
    # =================================================================

    def now(self) -> datetime:
        return self._now()

    def cache_key(self) -> str:
        return self.query.canonical_query(self.scope)

    async def _fetch(self, key: str, scope: list[str] | None) -> Snapshot:
        try:
            records, summaries = await asyncio.gather(
                self.provider.fetch_timeline(scope),
                self.provider.fetch_summaries(scope),
            )
        except asyncio.CancelledError:
            raise
        except Exception as e:
            raise FetchError(f"Failed to fetch timeline: {e}", key=key) from e
        return Snapshot(records=list(records), summaries=list(summaries), fetched_at=self._now())

    async def load(
        self, principal_ids: list[str] | None = None, force: bool = False
    ) -> TimelineView:
        """
        Load the timeline for principals (None for all) and recompute the view.

        Served from cache when a fresh snapshot exists for the current query.
        Failures are recorded in ``error``; the previous view is kept.

        Raises:
            EngineDisposedError: If called after dispose()
        """
        self._ensure_active()
        self.scope = sorted(set(principal_ids)) if principal_ids is not None else None
        return await self._load(force=force)

    async def _load(self, force: bool = False) -> TimelineView:
        self._ensure_active()
        self._generation += 1
        generation = self._generation
        key = self.cache_key()

        with RunContext(prefix="load"):
            snapshot = None
            if self.config.cache_enabled and not force:
                snapshot = self.cache.get(key)
                if snapshot is not None:
                    logger.debug(f"Cache hit: {key}")

            if snapshot is None:
                self.is_loading = True
                scope = self.scope
                try:
                    snapshot = await self.inflight.run(key, lambda: self._fetch(key, scope))
                except FetchError as e:
                    if generation == self._generation:
                        self.error = e
                        self.is_loading = False
                    logger.error(f"Timeline fetch failed for {key}: {e}")
                    return self.view
                if generation != self._generation:
                    logger.debug(f"Discarding superseded fetch: {key}")
                    return self.view
                self.is_loading = False
                if self.config.cache_enabled:
                    self.cache.set(key, snapshot)
                logger.info(
                    f"Fetched {len(snapshot.records)} entries and "
                    f"{len(snapshot.summaries)} summaries"
                )

            self._apply_snapshot(snapshot)

        if self.config.auto_refresh and self._refresh_task is None:
            self.start_auto_refresh()
        return self.view

    def _apply_snapshot(self, snapshot: Snapshot) -> None:
        self.records = list(snapshot.records)
        self.summaries = list(snapshot.summaries)
        self.error = None
        self.is_loading = False
        self._loaded = True
        self.last_updated = snapshot.fetched_at or self._now()
        self.recompute()

    async def refresh(self) -> TimelineView:
        """
        Bypass the cache and fetch the current query again.

        The cached snapshot is only replaced once the new fetch succeeds.
        """
        return await self._load(force=True)

    async def retry(self) -> TimelineView:
        """Re-run the last load after a failure. No automatic retry exists."""
        return await self._load()

    # =================================================================
    # RECOMPUTATION
    # =================================================================

    def recompute(self) -> None:
        """Re-run the view pipeline and analytics from the current snapshot."""
        self.recompute_view()
        self.recompute_analytics()

    def recompute_view(self) -> TimelineView:
        self.view = run_pipeline(
            self.records,
            self.query.filters,
            self.query.sort,
            page=self.query.page,
            page_size=self.query.page_size,
            view_mode=self.query.view_mode,
            now=self._now(),
        )
        self.query.total_pages = self.view.pagination.total_pages
        return self.view

    def recompute_analytics(self) -> PrincipalAnalytics:
        summaries = filter_summaries(self.summaries, self.query.summary_filter)
        wanted = {s.principal_id for s in summaries}
        timeline = [r for r in self.records if r.principal_id in wanted]
        self.analytics = aggregate(
            summaries, timeline=timeline, top_n=self.config.top_performers, now=self._now()
        )
        return self.analytics

    # =================================================================
    # QUERY TRIGGERS
    # =================================================================

    async def set_filters(self, **changes: Any) -> bool:
        """Update timeline filters and reload if anything changed."""
        self._ensure_active()
        if not self.query.update_filters(**changes):
            return False
        await self._load()
        return True

    async def clear_filters(self) -> bool:
        self._ensure_active()
        if not self.query.clear_filters():
            return False
        await self._load()
        return True

    async def apply_filter_input(self, raw: dict[str, Any]) -> dict[str, str]:
        """Apply form input; returns per-field errors for rejected fields."""
        self._ensure_active()
        before = self.cache_key()
        summary_before = self.query.summary_filter
        errors = self.query.apply_filter_input(raw)
        if self.cache_key() != before:
            await self._load()
        elif self.query.summary_filter != summary_before:
            self.recompute_analytics()
        return errors

    def set_summary_filter(self, **changes: Any) -> bool:
        self._ensure_active()
        if not self.query.set_summary_filter(**changes):
            return False
        self.recompute_analytics()
        return True

    def search(self, text: str) -> int:
        """Debounced search. Only the latest text within the quiet period applies."""
        self._ensure_active()
        return self._search.call(text)

    def _on_search_settled(self, text: str) -> None:
        if self._disposed:
            return
        self._spawn(self.set_filters(search=text))

    async def flush_search(self) -> None:
        """Apply a pending debounced search immediately and wait for it."""
        if self._search.flush():
            await asyncio.gather(*list(self._background))

    async def set_sort(self, field: str, order: str | None = None) -> bool:
        self._ensure_active()
        if not self.query.update_sort(field, order):
            return False
        await self._load()
        return True

    def go_to_page(self, page: int) -> bool:
        self._ensure_active()
        if not self.query.go_to_page(page):
            return False
        self.recompute_view()
        return True

    def next_page(self) -> bool:
        return self.go_to_page(self.query.page + 1)

    def previous_page(self) -> bool:
        return self.go_to_page(self.query.page - 1)

    def set_page_size(self, size: int) -> bool:
        self._ensure_active()
        if not self.query.set_page_size(size):
            return False
        self.recompute_view()
        return True

    def set_view_mode(self, mode: str) -> bool:
        self._ensure_active()
        if not self.query.set_view_mode(mode):
            return False
        self.recompute_view()
        return True

    # =================================================================
    # AUTO-REFRESH
    # =================================================================

    def start_auto_refresh(self, interval: float | None = None) -> asyncio.Task:
        """Refresh on a fixed interval until stopped or disposed."""
        self._ensure_active()
        self.stop_auto_refresh()
        period = interval if interval is not None else self.config.refresh_interval_seconds
        self._refresh_task = asyncio.ensure_future(self._refresh_loop(period))
        return self._refresh_task

    def stop_auto_refresh(self) -> None:
        if self._refresh_task is not None:
            self._refresh_task.cancel()
            self._refresh_task = None

    @property
    def auto_refreshing(self) -> bool:
        return self._refresh_task is not None and not self._refresh_task.done()

    async def _refresh_loop(self, period: float) -> None:
        while not self._disposed:
            await asyncio.sleep(period)
            if not self._loaded:
                continue
            with RunContext(prefix="refresh"):
                logger.debug("Auto-refresh tick")
                swept = self.cache.cleanup_expired()
                if swept:
                    logger.debug(f"Swept {swept} expired cache entries")
                await self.refresh()

    # =================================================================
    # MUTATIONS
    # =================================================================

    async def _mutate(
        self,
        operation: str,
        call: Callable[[MutationAPI], Awaitable[Any]],
        apply_local: Callable[[Any], None],
    ) -> Any:
        self._ensure_active()
        if self.mutations is None:
            raise MutationError(operation, "no mutation API configured")

        with RunContext(prefix="mutation"):
            try:
                result = await call(self.mutations)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                error = MutationError(operation, str(e))
                self.error = error
                logger.error(f"Mutation {operation} failed: {e}")
                raise error from e

            apply_local(result)
            # Any fetch still in flight predates this change
            self._generation += 1
            self.is_loading = False
            invalidated = self.cache.invalidate_pattern(f"{CACHE_KEY_PREFIX}:*")
            self.error = None
            self.recompute()
            logger.info(f"Mutation {operation} applied, {invalidated} cached snapshots invalidated")
        return result

    def _replace_local(self, updated: ActivityRecord) -> None:
        self.records = [
            updated if r.entry_id == updated.entry_id else r for r in self.records
        ]

    def _append_local(self, added: ActivityRecord) -> None:
        self.records = [*self.records, added]

    async def add_entry(self, entry: ActivityRecord) -> ActivityRecord:
        return await self._mutate(
            "add_entry", lambda api: api.add_entry(entry.normalized()), self._append_local
        )

    async def update_entry(self, entry_id: str, changes: dict[str, Any]) -> ActivityRecord:
        return await self._mutate(
            "update_entry", lambda api: api.update_entry(entry_id, changes), self._replace_local
        )

    async def delete_entry(self, entry_id: str) -> None:
        def remove(_result: Any) -> None:
            self.records = [r for r in self.records if r.entry_id != entry_id]

        await self._mutate("delete_entry", lambda api: api.delete_entry(entry_id), remove)

    async def mark_for_follow_up(
        self, entry_id: str, follow_up_date: datetime, notes: str | None = None
    ) -> ActivityRecord:
        return await self._mutate(
            "mark_for_follow_up",
            lambda api: api.mark_for_follow_up(entry_id, follow_up_date, notes),
            self._replace_local,
        )

    async def complete_follow_up(self, entry_id: str, notes: str | None = None) -> ActivityRecord:
        return await self._mutate(
            "complete_follow_up",
            lambda api: api.complete_follow_up(entry_id, notes),
            self._replace_local,
        )
