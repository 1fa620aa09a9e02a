"""
Persistence collaborators.

The sync engine reads and writes state only through two interfaces:

- CatalogRepository: the merchant's local product catalog
- SettingsStore: stored credentials, shop binding and run history

In-memory and JSON-file implementations are provided for local runs and
tests. A production deployment plugs its own ORM-backed classes in.
"""

from __future__ import annotations

import copy
import json
import logging
import os
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any

from ..common.errors import PersistenceError
from ..models import Credentials, LocalCatalogEntry

logger = logging.getLogger(__name__)


class CatalogRepository(ABC):
    """Local catalog. One full listing per batch; no per-SKU lookups."""

    @abstractmethod
    def list_products(self) -> list[LocalCatalogEntry]:
        raise NotImplementedError

    @abstractmethod
    def create(self, product: LocalCatalogEntry) -> LocalCatalogEntry:
        raise NotImplementedError

    @abstractmethod
    def update(self, product_id: str, partial: dict[str, Any]) -> LocalCatalogEntry:
        raise NotImplementedError


class SettingsStore(ABC):
    """Credentials and run history storage."""

    @abstractmethod
    def load_credentials(self) -> Credentials:
        raise NotImplementedError

    @abstractmethod
    def save_credentials(self, fields: dict[str, Any]) -> Credentials:
        """Apply a partial update to the stored credentials."""
        raise NotImplementedError

    @abstractmethod
    def load_run_history(self) -> list[dict[str, Any]]:
        raise NotImplementedError

    @abstractmethod
    def save_run_history(self, entries: list[dict[str, Any]]) -> None:
        raise NotImplementedError


# ── In-memory implementations ─────────────────────────────────────────────────


class InMemoryCatalogRepository(CatalogRepository):
    def __init__(self, products: list[LocalCatalogEntry] | None = None) -> None:
        self._products: dict[str, LocalCatalogEntry] = {}
        self._next_id = 1
        for product in products or []:
            self._insert(copy.deepcopy(product))

    def _insert(self, product: LocalCatalogEntry) -> LocalCatalogEntry:
        if not product.id:
            product.id = f"prod-{self._next_id}"
            self._next_id += 1
        self._products[product.id] = product
        return product

    def list_products(self) -> list[LocalCatalogEntry]:
        return [copy.deepcopy(p) for p in self._products.values()]

    def get(self, product_id: str) -> LocalCatalogEntry | None:
        product = self._products.get(product_id)
        return copy.deepcopy(product) if product else None

    def create(self, product: LocalCatalogEntry) -> LocalCatalogEntry:
        stored = copy.deepcopy(product)
        stored.id = None
        return copy.deepcopy(self._insert(stored))

    def update(self, product_id: str, partial: dict[str, Any]) -> LocalCatalogEntry:
        product = self._products.get(product_id)
        if product is None:
            raise PersistenceError(f"Product not found: {product_id}")
        for key, value in partial.items():
            if key == "id" or not hasattr(product, key):
                continue
            setattr(product, key, copy.deepcopy(value))
        return copy.deepcopy(product)

    def __len__(self) -> int:
        return len(self._products)


class InMemorySettingsStore(SettingsStore):
    def __init__(self, credentials: Credentials | None = None) -> None:
        self._credentials = credentials.to_dict() if credentials else Credentials().to_dict()
        self._runs: list[dict[str, Any]] = []

    def load_credentials(self) -> Credentials:
        return Credentials.from_dict(self._credentials)

    def save_credentials(self, fields: dict[str, Any]) -> Credentials:
        credentials = Credentials.from_dict(self._credentials)
        for key, value in fields.items():
            if not hasattr(credentials, key):
                raise PersistenceError(f"Unknown credentials field: {key}")
            setattr(credentials, key, value)
        self._credentials = credentials.to_dict()
        return credentials

    def load_run_history(self) -> list[dict[str, Any]]:
        return copy.deepcopy(self._runs)

    def save_run_history(self, entries: list[dict[str, Any]]) -> None:
        self._runs = copy.deepcopy(entries)


# ── JSON file implementations ─────────────────────────────────────────────────


def _read_json(path: Path, default: Any) -> Any:
    if not path.exists():
        return default
    try:
        with open(path, "r", encoding="utf-8") as f:
            return json.load(f)
    except (OSError, ValueError) as e:
        raise PersistenceError(f"Could not read {path}: {e}") from e


def _write_json(path: Path, data: Any) -> None:
    """Write JSON via a temp file and an atomic rename."""
    tmp_path = path.with_suffix(path.suffix + ".tmp")
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(tmp_path, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2, ensure_ascii=False)
        os.replace(tmp_path, path)
    except OSError as e:
        raise PersistenceError(f"Could not write {path}: {e}") from e


class JsonCatalogRepository(InMemoryCatalogRepository):
    """
    Catalog persisted as a JSON list of products.

    A write that fails to reach disk is rolled back in memory, so the
    catalog never holds a product the caller was told was not saved.
    """

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)
        super().__init__()
        for row in _read_json(self.path, []):
            product = LocalCatalogEntry.from_dict(row)
            self._insert(product)
            if product.id and product.id.startswith("prod-"):
                suffix = product.id[len("prod-"):]
                if suffix.isdigit():
                    self._next_id = max(self._next_id, int(suffix) + 1)

    def _flush(self) -> None:
        _write_json(self.path, [p.to_dict() for p in self._products.values()])

    def create(self, product: LocalCatalogEntry) -> LocalCatalogEntry:
        next_id = self._next_id
        created = super().create(product)
        try:
            self._flush()
        except PersistenceError:
            del self._products[created.id]
            self._next_id = next_id
            raise
        return created

    def update(self, product_id: str, partial: dict[str, Any]) -> LocalCatalogEntry:
        previous = copy.deepcopy(self._products.get(product_id))
        updated = super().update(product_id, partial)
        try:
            self._flush()
        except PersistenceError:
            self._products[product_id] = previous
            raise
        return updated


class JsonSettingsStore(InMemorySettingsStore):
    """
    Settings persisted in a single JSON file:

        {"credentials": {...}, "import_runs": [...]}

    Failed writes leave the in-memory state as it was before the call.
    """

    def __init__(self, path: str | Path) -> None:
        super().__init__()
        self.path = Path(path)
        data = _read_json(self.path, {})
        self._credentials = Credentials.from_dict(data.get("credentials")).to_dict()
        self._runs = list(data.get("import_runs") or [])

    def _flush(self) -> None:
        _write_json(self.path, {"credentials": self._credentials, "import_runs": self._runs})

    def save_credentials(self, fields: dict[str, Any]) -> Credentials:
        previous = self._credentials
        credentials = super().save_credentials(fields)
        try:
            self._flush()
        except PersistenceError:
            self._credentials = previous
            raise
        return credentials

    def save_run_history(self, entries: list[dict[str, Any]]) -> None:
        previous = self._runs
        super().save_run_history(entries)
        try:
            self._flush()
        except PersistenceError:
            self._runs = previous
            raise
