"""
Local catalog side of the sync engine.

Modules:
    repository - Catalog repository and settings store interfaces + implementations
    reconciler - Idempotent SKU-keyed upsert of one batch
    orchestrator - Multi-page import under budgets
    ledger - Capped run history
"""

from .ledger import RunLedger, entry_from_result
from .orchestrator import SyncOrchestrator
from .reconciler import ProductReconciler, map_status, normalize_sku
from .repository import (
    CatalogRepository,
    InMemoryCatalogRepository,
    InMemorySettingsStore,
    JsonCatalogRepository,
    JsonSettingsStore,
    SettingsStore,
)

__all__ = [
    'CatalogRepository',
    'SettingsStore',
    'InMemoryCatalogRepository',
    'InMemorySettingsStore',
    'JsonCatalogRepository',
    'JsonSettingsStore',
    'ProductReconciler',
    'map_status',
    'normalize_sku',
    'SyncOrchestrator',
    'RunLedger',
    'entry_from_result',
]
