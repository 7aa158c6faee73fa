from __future__ import annotations

import asyncio
import itertools
import time
import uuid
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Callable, Iterable, Mapping, Optional, Sequence

from ..common.app_logging import get_logger
from ..common.datetime_utils import now_utc, parse_iso_date
from ..common.retry import retry_with_backoff
from ..common.validators import normalize_notes, normalize_optional_id, parse_status, require_non_empty
from ..core.constants import (
    DEFAULT_QUERY_LIMIT,
    DEFAULT_QUERY_WINDOW_DAYS,
    DEFAULT_READ_RETRY_ATTEMPTS,
    DEFAULT_READ_RETRY_BASE_DELAY,
    DEFAULT_SCOPE_IDLE_SECONDS,
    TEMP_ID_PREFIX,
)
from ..core.enums import AttendanceStatus
from ..core.exceptions import ConflictError, DomainError, UnknownError, ValidationError
from .cache import AttendanceCache, CacheSnapshot
from .historical import HistoricalFetcher
from .model import AttendanceFilters, AttendanceKey, AttendanceRecord, MarkInput
from .store import IDENTITY_COLUMNS, AttendanceRecordStore

_logger = get_logger(__name__)


def to_mark_input(
    student_id: str,
    date: date | str,
    status: AttendanceStatus | str,
    notes: Optional[str] = None,
    subject_id: Optional[str] = None,
    faculty_id: Optional[str] = None,
) -> MarkInput:
    """Validate and normalise one mark. Raises ValidationError."""
    return MarkInput(
        student_id=require_non_empty(student_id, "student_id"),
        date=parse_iso_date(date),
        status=parse_status(status),
        notes=normalize_notes(notes),
        subject_id=normalize_optional_id(subject_id, "subject_id"),
        faculty_id=normalize_optional_id(faculty_id, "faculty_id"),
    )


def _coerce_mark(item: MarkInput | Mapping[str, object]) -> MarkInput:
    if isinstance(item, MarkInput):
        return to_mark_input(
            item.student_id, item.date, item.status, item.notes, item.subject_id, item.faculty_id
        )
    if isinstance(item, Mapping):
        allowed = {"student_id", "date", "status", "notes", "subject_id", "faculty_id"}
        unknown = set(item) - allowed
        if unknown:
            raise ValidationError(f"unexpected fields: {', '.join(sorted(unknown))}")
        try:
            return to_mark_input(**item)  # type: ignore[arg-type]
        except TypeError as exc:
            raise ValidationError("student_id, date and status are required") from exc
    raise ValidationError("attendance mark must be a MarkInput or a mapping")


def normalize_filters(filters: AttendanceFilters | Mapping[str, object] | None) -> AttendanceFilters:
    if filters is None:
        return AttendanceFilters()
    if isinstance(filters, Mapping):
        try:
            filters = AttendanceFilters(**filters)  # type: ignore[arg-type]
        except TypeError as exc:
            raise ValidationError("unsupported attendance filter") from exc

    def _opt_date(value, name):
        return parse_iso_date(value, name) if value is not None else None

    out = AttendanceFilters(
        date=_opt_date(filters.date, "date"),
        start_date=_opt_date(filters.start_date, "start_date"),
        end_date=_opt_date(filters.end_date, "end_date"),
        student_id=normalize_optional_id(filters.student_id, "student_id"),
    )
    if out.start_date and out.end_date and out.start_date > out.end_date:
        raise ValidationError("start_date must not be after end_date")
    return out


@dataclass
class _PendingWrite:
    items: list[MarkInput]
    now: datetime
    snapshot: CacheSnapshot


@dataclass
class _Scope:
    tenant_id: str
    filters: AttendanceFilters
    cache: AttendanceCache = field(default_factory=AttendanceCache)
    loaded: bool = False
    stale: bool = True
    latest_request: int = 0
    window_start: Optional[date] = None
    window_end: Optional[date] = None
    # Optimistic writes not yet settled by the store, keyed by write token in issue order.
    pending: dict[int, _PendingWrite] = field(default_factory=dict)
    last_used: float = 0.0

    def next_request(self) -> int:
        self.latest_request += 1
        return self.latest_request

    def accepts(self, item: MarkInput) -> bool:
        if self.filters.student_id is not None and item.student_id != self.filters.student_id:
            return False
        if self.window_start is not None and item.date < self.window_start:
            return False
        if self.window_end is not None and item.date > self.window_end:
            return False
        return True


class AttendanceSyncEngine:
    """Optimistic write API over an attendance store.

    Reads are cached per scope, a scope being a tenant id plus the query
    filters. Writes are applied to every matching cached scope before the
    store is called and undone if the store call fails. A successful write
    only flags the tenant's scopes stale; the next :meth:`query` (or an
    explicit :meth:`refresh`) reconciles with the store.

    While a write is in flight its scopes keep serving the cache, and a
    reload re-applies the unsettled writes on top of the fresh rows. Scopes
    left unused for ``scope_idle_seconds`` are dropped unless a write on
    them is still pending.

    All methods are meant to run on one event loop. Cache mutations happen
    between awaits, so they need no locking.
    """

    def __init__(
        self,
        store: AttendanceRecordStore,
        *,
        historical: Optional[HistoricalFetcher] = None,
        query_limit: int = DEFAULT_QUERY_LIMIT,
        default_window_days: int = DEFAULT_QUERY_WINDOW_DAYS,
        retry_attempts: int = DEFAULT_READ_RETRY_ATTEMPTS,
        retry_base_delay: float = DEFAULT_READ_RETRY_BASE_DELAY,
        scope_idle_seconds: float = DEFAULT_SCOPE_IDLE_SECONDS,
        clock: Callable[[], datetime] = now_utc,
        timer: Callable[[], float] = time.monotonic,
    ):
        self._store = store
        self._historical = historical or HistoricalFetcher(
            store, retry_attempts=retry_attempts, retry_base_delay=retry_base_delay
        )
        self._query_limit = int(query_limit)
        self._default_window_days = int(default_window_days)
        self._retry_attempts = int(retry_attempts)
        self._retry_base_delay = float(retry_base_delay)
        self._scope_idle_seconds = float(scope_idle_seconds)
        self._clock = clock
        self._timer = timer
        self._scopes: dict[tuple[str, AttendanceFilters], _Scope] = {}
        self._write_tokens = itertools.count(1)

    @property
    def scope_idle_seconds(self) -> float:
        return self._scope_idle_seconds

    # -- reads ---------------------------------------------------------------

    async def query(
        self,
        tenant_id: str,
        filters: AttendanceFilters | Mapping[str, object] | None = None,
    ) -> list[AttendanceRecord]:
        scope = self._scope(tenant_id, filters)
        if scope.loaded and (not scope.stale or scope.pending):
            return scope.cache.records()
        return await self._fetch(scope)

    async def refresh(
        self,
        tenant_id: str,
        filters: AttendanceFilters | Mapping[str, object] | None = None,
    ) -> list[AttendanceRecord]:
        return await self._fetch(self._scope(tenant_id, filters))

    def is_stale(self, tenant_id: str, filters: AttendanceFilters | Mapping[str, object] | None = None) -> bool:
        scope = self._scopes.get((require_non_empty(tenant_id, "tenant_id"), normalize_filters(filters)))
        return scope is None or not scope.loaded or scope.stale

    def cached_records(
        self,
        tenant_id: str,
        filters: AttendanceFilters | Mapping[str, object] | None = None,
    ) -> list[AttendanceRecord]:
        """Current cache contents of a scope, without touching the store."""
        scope = self._scopes.get((require_non_empty(tenant_id, "tenant_id"), normalize_filters(filters)))
        return scope.cache.records() if scope else []

    def invalidate(self, tenant_id: str) -> None:
        """Flag every cached scope of the tenant stale without refetching.

        Reads already in flight were issued before the invalidation, so
        their responses are discarded.
        """
        for scope in self._tenant_scopes(tenant_id):
            scope.stale = True
            scope.next_request()

    async def historical(self, tenant_id: str, start_date: date | str, end_date: date | str) -> list[AttendanceRecord]:
        return await self._historical.fetch(tenant_id, start_date, end_date)

    # -- writes --------------------------------------------------------------

    async def mark(
        self,
        tenant_id: str,
        student_id: str,
        date: date | str,
        status: AttendanceStatus | str,
        notes: Optional[str] = None,
        subject_id: Optional[str] = None,
        faculty_id: Optional[str] = None,
    ) -> None:
        tenant_id = require_non_empty(tenant_id, "tenant_id")
        item = to_mark_input(student_id, date, status, notes, subject_id, faculty_id)
        now = self._clock()

        token, scopes = self._apply_optimistic(tenant_id, [item], now)
        try:
            await self._persist_one(tenant_id, item, now)
        except asyncio.CancelledError:
            self._settle(token, scopes, rollback=True)
            raise
        except DomainError as exc:
            self._settle(token, scopes, rollback=True)
            _logger.warning("mark rolled back tenant=%s key=%s: %s", tenant_id, item.key, exc)
            raise
        except Exception as exc:
            self._settle(token, scopes, rollback=True)
            _logger.exception("mark failed unexpectedly tenant=%s key=%s", tenant_id, item.key)
            raise UnknownError("failed to mark attendance") from exc

        self._settle(token, scopes, rollback=False)
        self.invalidate(tenant_id)

    async def bulk_mark(self, tenant_id: str, records: Iterable[MarkInput | Mapping[str, object]]) -> None:
        tenant_id = require_non_empty(tenant_id, "tenant_id")
        items = [_coerce_mark(r) for r in records]
        if not items:
            return

        # The store cannot touch one row twice in a single upsert; the last mark wins.
        by_key: dict[AttendanceKey, MarkInput] = {}
        for item in items:
            by_key[item.key] = item
        batch = list(by_key.values())
        now = self._clock()

        token, scopes = self._apply_optimistic(tenant_id, batch, now)
        try:
            await self._store.bulk_upsert(tenant_id, batch, conflict_target=IDENTITY_COLUMNS)
        except asyncio.CancelledError:
            self._settle(token, scopes, rollback=True)
            self.invalidate(tenant_id)
            raise
        except DomainError as exc:
            # The store may have applied part of the batch; the next read reconciles.
            self._settle(token, scopes, rollback=True)
            self.invalidate(tenant_id)
            _logger.warning("bulk mark of %d rows rolled back tenant=%s: %s", len(batch), tenant_id, exc)
            raise
        except Exception as exc:
            self._settle(token, scopes, rollback=True)
            self.invalidate(tenant_id)
            _logger.exception("bulk mark failed unexpectedly tenant=%s", tenant_id)
            raise UnknownError("failed to save attendance") from exc

        self._settle(token, scopes, rollback=False)
        self.invalidate(tenant_id)
        _logger.info("bulk marked %d rows tenant=%s", len(batch), tenant_id)

    # -- internals -----------------------------------------------------------

    def _scope(self, tenant_id: str, filters) -> _Scope:
        tenant_id = require_non_empty(tenant_id, "tenant_id")
        filters = normalize_filters(filters)
        self._evict_idle()
        key = (tenant_id, filters)
        scope = self._scopes.get(key)
        if scope is None:
            scope = _Scope(tenant_id=tenant_id, filters=filters)
            scope.window_start, scope.window_end = self._window(filters)
            self._scopes[key] = scope
        scope.last_used = self._timer()
        return scope

    def _evict_idle(self) -> None:
        now = self._timer()
        idle = [
            key
            for key, scope in self._scopes.items()
            if not scope.pending and now - scope.last_used >= self._scope_idle_seconds
        ]
        for key in idle:
            del self._scopes[key]
        if idle:
            _logger.debug("dropped %d idle attendance scopes", len(idle))

    def _tenant_scopes(self, tenant_id: str) -> list[_Scope]:
        return [s for s in self._scopes.values() if s.tenant_id == tenant_id]

    def _window(self, filters: AttendanceFilters) -> tuple[Optional[date], Optional[date]]:
        if filters.date is not None:
            return filters.date, filters.date
        if filters.start_date is not None and filters.end_date is not None:
            return filters.start_date, filters.end_date
        return self._clock().date() - timedelta(days=self._default_window_days), None

    async def _fetch(self, scope: _Scope) -> list[AttendanceRecord]:
        ticket = scope.next_request()
        start, end = self._window(scope.filters)
        scope.window_start, scope.window_end = start, end

        async def call():
            return await self._store.fetch_range(
                scope.tenant_id,
                start_date=start,
                end_date=end,
                student_id=scope.filters.student_id,
                limit=self._query_limit,
            )

        try:
            rows = await retry_with_backoff(
                call, attempts=self._retry_attempts, base_delay=self._retry_base_delay
            )
        except DomainError:
            raise
        except Exception as exc:
            raise UnknownError("failed to load attendance") from exc

        if ticket != scope.latest_request:
            _logger.debug(
                "discarding outdated response for tenant=%s filters=%s (request %d, latest %d)",
                scope.tenant_id,
                scope.filters,
                ticket,
                scope.latest_request,
            )
            return scope.cache.records()

        scope.cache.load(rows)
        # The fresh rows may predate writes still in flight; lay those back on top.
        for write in scope.pending.values():
            write.snapshot = self._overlay(scope, [i for i in write.items if scope.accepts(i)], write.now)
        scope.loaded = True
        scope.stale = False
        return scope.cache.records()

    def _apply_optimistic(
        self, tenant_id: str, items: Sequence[MarkInput], now: datetime
    ) -> tuple[int, list[_Scope]]:
        self._evict_idle()
        token = next(self._write_tokens)
        touched: list[_Scope] = []
        for scope in self._tenant_scopes(tenant_id):
            batch = [item for item in items if scope.accepts(item)]
            if not batch:
                continue
            scope.pending[token] = _PendingWrite(items=batch, now=now, snapshot=self._overlay(scope, batch, now))
            # A read already in flight may predate this write.
            scope.next_request()
            touched.append(scope)
        return token, touched

    def _overlay(self, scope: _Scope, items: Sequence[MarkInput], now: datetime) -> CacheSnapshot:
        snapshot = scope.cache.snapshot()
        for item in items:
            scope.cache.upsert_local(self._optimistic_record(scope.cache, item, now), snapshot)
        return snapshot

    @staticmethod
    def _optimistic_record(cache: AttendanceCache, item: MarkInput, now: datetime) -> AttendanceRecord:
        existing = cache.find(item)
        if existing is not None:
            return existing.with_status(item.status, item.notes, now)
        return AttendanceRecord(
            id=f"{TEMP_ID_PREFIX}{uuid.uuid4().hex}",
            student_id=item.student_id,
            date=item.date,
            status=item.status,
            notes=item.notes,
            subject_id=item.subject_id,
            faculty_id=item.faculty_id,
            created_at=now,
            updated_at=now,
        )

    @staticmethod
    def _settle(token: int, scopes: list[_Scope], *, rollback: bool) -> None:
        for scope in scopes:
            write = scope.pending.pop(token, None)
            if write is not None and rollback:
                scope.cache.restore(write.snapshot)

    async def _persist_one(self, tenant_id: str, item: MarkInput, now: datetime) -> None:
        existing = await self._store.find_by_identity(tenant_id, item.key)
        if existing is not None:
            updated = await self._store.update(
                tenant_id, existing.id, status=item.status, notes=item.notes, updated_at=now
            )
            if not updated:
                raise ConflictError(f"attendance row {existing.id} changed before it could be updated")
        else:
            await self._store.insert(tenant_id, item)
