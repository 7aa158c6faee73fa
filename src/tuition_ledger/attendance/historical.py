from __future__ import annotations

from datetime import date
from typing import Optional

from ..common.app_logging import get_logger
from ..common.datetime_utils import parse_iso_date
from ..common.retry import retry_with_backoff
from ..common.validators import require_non_empty
from ..core.constants import (
    DEFAULT_HISTORY_CAP,
    DEFAULT_PAGE_SIZE,
    DEFAULT_READ_RETRY_ATTEMPTS,
    DEFAULT_READ_RETRY_BASE_DELAY,
)
from ..core.exceptions import DomainError, UnknownError, ValidationError
from .model import AttendanceRecord
from .store import AttendanceRecordStore

_logger = get_logger(__name__)


class HistoricalFetcher:
    """Offset-paginated range scan for report-style queries.

    Talks to the store directly and never touches a cache. The scan stops on
    the first short page or once ``max_records`` rows are collected. Rows are
    kept in the order the store returns them (date desc, created_at desc).

    Offsets are not stable under concurrent writes: a row inserted or deleted
    mid-scan can shift page boundaries. Rows whose id was already collected
    are dropped; a row shifted past a boundary may still be missed.
    """

    def __init__(
        self,
        store: AttendanceRecordStore,
        *,
        page_size: int = DEFAULT_PAGE_SIZE,
        max_records: int = DEFAULT_HISTORY_CAP,
        retry_attempts: int = DEFAULT_READ_RETRY_ATTEMPTS,
        retry_base_delay: float = DEFAULT_READ_RETRY_BASE_DELAY,
    ):
        if int(page_size) <= 0:
            raise ValueError("page_size must be positive")
        if int(max_records) <= 0:
            raise ValueError("max_records must be positive")
        self._store = store
        self._page_size = int(page_size)
        self._max_records = int(max_records)
        self._retry_attempts = int(retry_attempts)
        self._retry_base_delay = float(retry_base_delay)

    @property
    def page_size(self) -> int:
        return self._page_size

    @property
    def max_records(self) -> int:
        return self._max_records

    async def fetch(
        self,
        tenant_id: str,
        start_date: Optional[date | str],
        end_date: Optional[date | str],
    ) -> list[AttendanceRecord]:
        tenant_id = require_non_empty(tenant_id, "tenant_id")
        if start_date is None or end_date is None:
            raise ValidationError("historical queries need both start_date and end_date")
        start = parse_iso_date(start_date, "start_date")
        end = parse_iso_date(end_date, "end_date")
        if start > end:
            raise ValidationError("start_date must not be after end_date")

        collected: list[AttendanceRecord] = []
        seen_ids: set[str] = set()
        offset = 0
        pages = 0

        while len(collected) < self._max_records:
            page = await self._fetch_page(tenant_id, start, end, offset)
            pages += 1
            added = 0
            for row in page:
                if row.id in seen_ids:
                    _logger.warning("dropping duplicate row %s at offset %d (tenant=%s)", row.id, offset, tenant_id)
                    continue
                seen_ids.add(row.id)
                collected.append(row)
                added += 1
            if len(page) < self._page_size:
                break
            if not added:
                _logger.warning("full page without new rows at offset %d, stopping scan (tenant=%s)", offset, tenant_id)
                break
            offset += self._page_size

        if len(collected) > self._max_records:
            collected = collected[: self._max_records]
        _logger.info(
            "historical scan tenant=%s range=%s..%s pages=%d rows=%d capped=%s",
            tenant_id,
            start.isoformat(),
            end.isoformat(),
            pages,
            len(collected),
            len(collected) >= self._max_records,
        )
        return collected

    async def _fetch_page(self, tenant_id: str, start: date, end: date, offset: int):
        async def call():
            return await self._store.fetch_range(
                tenant_id,
                start_date=start,
                end_date=end,
                limit=self._page_size,
                offset=offset,
            )

        try:
            return list(
                await retry_with_backoff(
                    call,
                    attempts=self._retry_attempts,
                    base_delay=self._retry_base_delay,
                )
            )
        except DomainError:
            _logger.error("historical scan aborted at offset %d (tenant=%s)", offset, tenant_id)
            raise
        except Exception as exc:
            _logger.exception("historical scan failed at offset %d (tenant=%s)", offset, tenant_id)
            raise UnknownError("historical attendance fetch failed") from exc
