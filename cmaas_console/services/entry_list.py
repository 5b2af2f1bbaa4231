"""Entry list coordination: paging, debounced search, deletes and toggles.

``EntryListController`` holds the state of one entry table on the event loop.
Columns come from the data actually returned (the first entry's keys) so keys
left behind by older schemas stay visible; only an empty page falls back to
the schema's field names.

Every fetch takes a sequence number and only the newest response is applied,
so a slow response for an earlier page or search term can never overwrite a
newer one.
"""

from __future__ import annotations

import asyncio
import logging

from cmaas_console.config import settings
from cmaas_console.core.field_types import column_kind, format_cell
from cmaas_console.core.metrics import entry_toggle_rollbacks_total
from cmaas_console.core.optimistic import OptimisticUpdate, SettleGuard
from cmaas_console.schemas.console import EntryRow, EntryTableView, PaginationView
from cmaas_console.schemas.content import ContentEntry, ContentType
from cmaas_console.services.cms_client import CmsClient, CmsError, CmsNotFound

logger = logging.getLogger("cmaas.entries")


def page_window(current: int, total_pages: int, size: int = 5) -> list[int]:
    """Page-number buttons centred on *current*, clamped to ``1..total_pages``."""
    start = max(1, current - size // 2)
    end = min(total_pages, start + size - 1)
    if end - start < size - 1:
        start = max(1, end - size + 1)
    return list(range(start, end + 1))


class EntryListController:
    def __init__(
        self,
        client: CmsClient,
        content_type_id: int,
        *,
        page_size: int | None = None,
        debounce: float | None = None,
        settle_delay: float | None = None,
        window: int | None = None,
        truncate_at: int | None = None,
    ) -> None:
        self.client = client
        self.content_type_id = content_type_id
        self.page_size = page_size or settings.ENTRY_PAGE_SIZE
        self.debounce = settings.SEARCH_DEBOUNCE_SECONDS if debounce is None else debounce
        self.settle_delay = (
            settings.TOGGLE_SETTLE_SECONDS if settle_delay is None else settle_delay
        )
        self.window = window or settings.PAGE_WINDOW
        self.truncate_at = truncate_at

        self.content_type: ContentType | None = None
        self.not_found = False
        self.entries: list[ContentEntry] = []
        self.page = 1
        self.total_records = 0
        self.total_pages = 0
        self.search_term = ""
        self.loading = False
        self.error: str | None = None
        self.toggling = SettleGuard(self.settle_delay)

        self._seq = 0
        self._debounce_handle: asyncio.TimerHandle | None = None
        self._inflight: set[asyncio.Task] = set()
        self._visibility = OptimisticUpdate(self._get_entries, self._set_entries)

    def _get_entries(self) -> list[ContentEntry]:
        return self.entries

    def _set_entries(self, entries: list[ContentEntry]) -> None:
        self.entries = entries

    # ── Loading ────────────────────────────────────────────────────────

    async def load(self, *, page: int = 1, search_term: str = "") -> bool:
        """Fetch the content type, then the requested page of entries."""
        self.search_term = search_term
        self.page = max(1, page)
        try:
            self.content_type = await self.client.get_content_type(self.content_type_id)
            self.not_found = False
        except CmsNotFound:
            logger.warning("Content type %s not found", self.content_type_id)
            self.content_type = None
            self.not_found = True
            self.entries = []
            return False
        except CmsError as exc:
            logger.warning("Failed to fetch content type %s: %s", self.content_type_id, exc)
            self.error = "Failed to fetch content type"
        return await self.fetch()

    async def fetch(self, page: int | None = None) -> bool:
        """Fetch one page. Returns False when the response failed or went stale."""
        self._seq += 1
        seq = self._seq
        target = self.page if page is None else page
        self.loading = True
        try:
            result = await self.client.list_entries(
                self.content_type_id,
                page=target,
                page_size=self.page_size,
                search_term=self.search_term,
            )
        except CmsError as exc:
            if seq != self._seq:
                return False
            logger.warning("Failed to fetch entries for %s: %s", self.content_type_id, exc)
            self.entries = []
            self.error = "Failed to fetch entries"
            return False
        finally:
            if seq == self._seq:
                self.loading = False

        if seq != self._seq:
            logger.debug("Discarding stale response for page %s", target)
            return False
        self.entries = list(result.entries)
        self.total_records = result.total_records
        self.total_pages = result.total_pages
        self.page = result.page or target
        self.error = None
        return True

    # ── Search and paging ──────────────────────────────────────────────

    def set_search(self, term: str) -> None:
        """Buffer a search term; fetch once input has been quiet for ``debounce``."""
        self.search_term = term
        self.page = 1
        self._cancel_debounce()
        loop = asyncio.get_running_loop()
        self._debounce_handle = loop.call_later(self.debounce, self._start_debounced_fetch)

    def _start_debounced_fetch(self) -> None:
        self._debounce_handle = None
        task = asyncio.get_running_loop().create_task(self.fetch())
        self._inflight.add(task)
        task.add_done_callback(self._inflight.discard)

    def _cancel_debounce(self) -> None:
        if self._debounce_handle is not None:
            self._debounce_handle.cancel()
            self._debounce_handle = None

    async def wait_idle(self) -> None:
        """Wait for a pending debounced fetch to fire and finish."""
        loop = asyncio.get_running_loop()
        while self._debounce_handle is not None or self._inflight:
            if self._inflight:
                await asyncio.gather(*list(self._inflight), return_exceptions=True)
            else:
                await asyncio.sleep(max(0.001, self._debounce_handle.when() - loop.time()))

    async def go_to_page(self, page: int) -> bool:
        if self.total_pages:
            page = min(page, self.total_pages)
        page = max(1, page)
        self._cancel_debounce()
        self.page = page
        return await self.fetch(page)

    async def next_page(self) -> bool:
        return await self.go_to_page(self.page + 1)

    async def previous_page(self) -> bool:
        return await self.go_to_page(self.page - 1)

    # ── Mutations ──────────────────────────────────────────────────────

    async def delete_entry(self, entry_id: int) -> bool:
        """Delete an entry; step back a page if it was the last row shown."""
        try:
            await self.client.delete_entry(entry_id)
        except CmsError as exc:
            logger.warning("Failed to delete entry %s: %s", entry_id, exc)
            self.error = "Failed to delete entry"
            return False
        logger.info("Deleted entry %s", entry_id)
        if len(self.entries) == 1 and self.page > 1:
            self.page -= 1
        await self.fetch(self.page)
        return True

    async def toggle_visibility(self, entry_id: int) -> bool:
        """Flip visibility locally, then on the backend; revert on failure.

        A row stays guarded against repeat toggles until ``settle_delay``
        after success, or until the failure is handled. A failure only puts
        back this row's flag, so a page fetched or another row toggled in
        the meantime is left as it is.
        """
        current = next((e for e in self.entries if e.id == entry_id), None)
        if current is None or not self.toggling.acquire(entry_id):
            return False
        original = current.is_visible

        def set_visible(value: bool):
            def update(entries: list[ContentEntry]) -> list[ContentEntry]:
                return [
                    e.model_copy(update={"is_visible": value}) if e.id == entry_id else e
                    for e in entries
                ]

            return update

        try:
            reported = await self._visibility.run(
                set_visible(not original),
                lambda: self.client.toggle_visibility(entry_id),
                revert=set_visible(original),
            )
        except CmsError as exc:
            logger.warning("Failed to toggle visibility of entry %s: %s", entry_id, exc)
            entry_toggle_rollbacks_total.inc()
            self.toggling.release(entry_id)
            self.error = "Failed to update visibility status"
            return False

        if reported is not None:
            self.entries = set_visible(reported)(self.entries)
        self.toggling.settle(entry_id)
        return True

    def close(self) -> None:
        """Cancel pending timers when the table goes away."""
        self._cancel_debounce()
        self.toggling.close()

    # ── View ───────────────────────────────────────────────────────────

    @property
    def columns(self) -> list[str]:
        if self.entries:
            return list(self.entries[0].data.keys())
        if self.content_type is not None:
            return self.content_type.field_names
        return []

    def column_kind(self, name: str) -> str:
        fields = self.content_type.fields if self.content_type is not None else []
        return column_kind(fields, name)

    def rows(self) -> list[EntryRow]:
        columns = self.columns
        kinds = [self.column_kind(c) for c in columns]
        return [
            EntryRow(
                id=entry.id,
                cells=[
                    format_cell(entry.data.get(col), kind, truncate_at=self.truncate_at)
                    for col, kind in zip(columns, kinds)
                ],
                is_visible=entry.is_visible,
                toggling=entry.id in self.toggling,
                created_at=entry.created_at,
            )
            for entry in self.entries
        ]

    @property
    def page_numbers(self) -> list[int]:
        return page_window(self.page, self.total_pages, self.window)

    def pagination(self) -> PaginationView:
        showing_from = (self.page - 1) * self.page_size + 1 if self.total_records else 0
        showing_to = min(self.page * self.page_size, self.total_records)
        return PaginationView(
            page=self.page,
            page_size=self.page_size,
            total_records=self.total_records,
            total_pages=self.total_pages,
            page_numbers=self.page_numbers,
            has_previous=self.page > 1,
            has_next=self.page < self.total_pages,
            showing_from=showing_from,
            showing_to=showing_to,
        )

    def summary(self) -> str:
        p = self.pagination()
        return f"Showing {p.showing_from} to {p.showing_to} of {p.total_records} entries"

    def view(self) -> EntryTableView:
        columns = self.columns
        return EntryTableView(
            content_type_id=self.content_type_id,
            content_type_name=self.content_type.name if self.content_type else None,
            search_term=self.search_term,
            columns=columns,
            column_kinds=[self.column_kind(c) for c in columns],
            rows=self.rows(),
            pagination=self.pagination(),
            summary=self.summary(),
            error=self.error,
        )
