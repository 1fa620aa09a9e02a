"""Tests for shopsync/catalog/ledger.py"""

from datetime import datetime, timezone
from unittest.mock import MagicMock

import pytest

from shopsync.catalog.ledger import RunLedger, entry_from_result
from shopsync.common.constants import MAX_FAILURES
from shopsync.models import (
    MODE_COMMIT,
    MODE_DRY_RUN,
    SCOPE_BULK,
    SCOPE_PAGE,
    BulkImportResult,
    ImportFailure,
    ImportResult,
    RunLedgerEntry,
)

STARTED = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)
FINISHED = datetime(2024, 1, 1, 12, 5, tzinfo=timezone.utc)


def _entry(n, scope=SCOPE_PAGE):
    return entry_from_result(scope, ImportResult(created=n), STARTED, FINISHED)


class TestEntryFromResult:
    def test_page_result(self):
        result = ImportResult(created=2, updated=1, skipped=1,
                              failures=[ImportFailure("p9", "missing price")])
        entry = entry_from_result(SCOPE_PAGE, result, STARTED, FINISHED,
                                  page_token="5", next_page_token="10", pages_fetched=1, shop_cipher="c1")
        assert entry.scope == SCOPE_PAGE
        assert entry.mode == MODE_COMMIT
        assert entry.success is True
        assert entry.started_at == STARTED.isoformat()
        assert entry.finished_at == FINISHED.isoformat()
        assert entry.products_fetched == 4
        assert entry.page_token == "5"
        assert entry.next_page_token == "10"
        assert entry.failures == (ImportFailure("p9", "missing price"),)
        assert entry.shop_cipher == "c1"
        assert entry.id

    def test_bulk_result(self):
        result = BulkImportResult(dry_run=True, created=3, pages_fetched=2, products_fetched=7,
                                  truncated=True, next_page_token="tok")
        entry = entry_from_result(SCOPE_BULK, result, STARTED, FINISHED, next_page_token="ignored")
        assert entry.mode == MODE_DRY_RUN
        assert entry.pages_fetched == 2
        assert entry.products_fetched == 7
        assert entry.truncated is True
        assert entry.next_page_token == "tok"

    def test_failed_result(self):
        entry = entry_from_result(SCOPE_BULK, BulkImportResult(success=False, error="boom"), STARTED)
        assert entry.success is False
        assert entry.error == "boom"

    def test_failures_capped(self):
        failures = [ImportFailure(f"p{n}", "bad") for n in range(MAX_FAILURES + 5)]
        entry = entry_from_result(SCOPE_PAGE, ImportResult(failures=failures), STARTED)
        assert len(entry.failures) == MAX_FAILURES

    def test_dict_round_trip(self):
        entry = entry_from_result(SCOPE_PAGE, ImportResult(failures=[ImportFailure("p1", "x")]), STARTED)
        assert RunLedgerEntry.from_dict(entry.to_dict()) == entry


class TestRunLedger:
    def test_newest_first(self, store):
        ledger = RunLedger(store)
        for n in range(3):
            ledger.record(_entry(n))
        assert [e.created for e in ledger.history()] == [2, 1, 0]

    def test_capped(self, store):
        ledger = RunLedger(store, cap=3)
        for n in range(5):
            assert ledger.record(_entry(n)) is True
        assert [e.created for e in ledger.history()] == [4, 3, 2]
        assert len(store.load_run_history()) == 3

    def test_history_limit(self, store):
        ledger = RunLedger(store)
        for n in range(4):
            ledger.record(_entry(n))
        assert len(ledger.history(limit=2)) == 2
        assert ledger.history(limit=0) == []

    def test_empty_history(self, store):
        assert RunLedger(store).history() == []

    def test_cap_at_least_one(self, store):
        assert RunLedger(store, cap=0).cap == 1

    @pytest.mark.parametrize("failing", ["load_run_history", "save_run_history"])
    def test_write_failure_is_not_raised(self, failing):
        store = MagicMock()
        store.load_run_history.return_value = []
        getattr(store, failing).side_effect = OSError("read-only")
        assert RunLedger(store).record(_entry(1)) is False
