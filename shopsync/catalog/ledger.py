"""
Run Ledger

Append-only, capped audit trail of sync attempts, stored newest first
through the settings store. Recording is best-effort: a failure to write
the ledger is logged and never fails the sync it describes.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone

from ..common.constants import DEFAULT_LEDGER_CAP, MAX_FAILURES
from ..models import (
    MODE_COMMIT,
    MODE_DRY_RUN,
    BulkImportResult,
    ImportResult,
    RunLedgerEntry,
)
from .repository import SettingsStore

logger = logging.getLogger(__name__)


def entry_from_result(
    scope: str,
    result: ImportResult,
    started_at: datetime,
    finished_at: datetime | None = None,
    page_token: str | None = None,
    next_page_token: str | None = None,
    pages_fetched: int = 0,
    shop_cipher: str | None = None,
) -> RunLedgerEntry:
    """Build a ledger entry from an import result (page or bulk)."""
    finished_at = finished_at or datetime.now(timezone.utc)
    bulk = result if isinstance(result, BulkImportResult) else None
    if bulk is not None:
        next_page_token = bulk.next_page_token
        pages_fetched = bulk.pages_fetched

    return RunLedgerEntry(
        id=uuid.uuid4().hex,
        scope=scope,
        mode=MODE_DRY_RUN if result.dry_run else MODE_COMMIT,
        success=result.success,
        started_at=started_at.isoformat(),
        finished_at=finished_at.isoformat(),
        created=result.created,
        updated=result.updated,
        skipped=result.skipped,
        failures=tuple(result.failures[:MAX_FAILURES]),
        error=result.error or "",
        pages_fetched=pages_fetched,
        products_fetched=bulk.products_fetched if bulk is not None else result.created + result.updated + result.skipped,
        truncated=bulk.truncated if bulk is not None else False,
        page_token=page_token or "",
        next_page_token=next_page_token or "",
        shop_cipher=shop_cipher or "",
    )


class RunLedger:
    """
    Capped run history.

    Usage:
        ledger = RunLedger(store, cap=25)
        ledger.record(entry_from_result("bulk", result, started_at))
        for entry in ledger.history(limit=5):
            print(entry.finished_at, entry.created, entry.updated)
    """

    def __init__(self, store: SettingsStore, cap: int = DEFAULT_LEDGER_CAP):
        self.store = store
        self.cap = max(1, int(cap))

    def record(self, entry: RunLedgerEntry) -> bool:
        """
        Prepend an entry and trim history to the cap.

        Returns:
            True if stored, False if the write failed (logged, not raised)
        """
        try:
            entries = self.store.load_run_history()
            entries.insert(0, entry.to_dict())
            self.store.save_run_history(entries[:self.cap])
            return True
        except Exception as e:
            logger.warning("Could not record %s run %s: %s", entry.scope, entry.id, e)
            return False

    def history(self, limit: int | None = None) -> list[RunLedgerEntry]:
        """Stored entries, newest first."""
        entries = self.store.load_run_history()[:self.cap]
        if limit is not None:
            entries = entries[:max(0, limit)]
        return [RunLedgerEntry.from_dict(row) for row in entries]
