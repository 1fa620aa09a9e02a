"""
Data models for the sync engine.

This module contains pure data classes with no business logic.
"""

from .catalog import (
    AuthorizedShop,
    BulkImportResult,
    CatalogPage,
    ImportFailure,
    ImportResult,
    LocalCatalogEntry,
    PageImportResult,
    RemoteProductPreview,
)
from .credentials import ConfigSummary, Credentials, TokenPayload
from .ledger import MODE_COMMIT, MODE_DRY_RUN, SCOPE_BULK, SCOPE_PAGE, RunLedgerEntry

__all__ = [
    'AuthorizedShop',
    'BulkImportResult',
    'CatalogPage',
    'ConfigSummary',
    'Credentials',
    'ImportFailure',
    'ImportResult',
    'LocalCatalogEntry',
    'PageImportResult',
    'RemoteProductPreview',
    'RunLedgerEntry',
    'TokenPayload',
    'SCOPE_PAGE',
    'SCOPE_BULK',
    'MODE_DRY_RUN',
    'MODE_COMMIT',
]
