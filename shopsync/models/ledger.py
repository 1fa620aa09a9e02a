"""
Run ledger entry model.
"""

from dataclasses import asdict, dataclass, field
from typing import Any, Dict, Tuple

from .catalog import ImportFailure

SCOPE_PAGE = "page"
SCOPE_BULK = "bulk"
MODE_DRY_RUN = "dry_run"
MODE_COMMIT = "commit"


@dataclass(frozen=True)
class RunLedgerEntry:
    """Immutable record of one sync attempt."""
    id: str
    scope: str
    mode: str
    success: bool
    started_at: str
    finished_at: str
    created: int = 0
    updated: int = 0
    skipped: int = 0
    failures: Tuple[ImportFailure, ...] = field(default_factory=tuple)
    error: str = ""
    pages_fetched: int = 0
    products_fetched: int = 0
    truncated: bool = False
    page_token: str = ""
    next_page_token: str = ""
    shop_cipher: str = ""

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["failures"] = [asdict(f) for f in self.failures]
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RunLedgerEntry":
        known = cls.__dataclass_fields__
        values = {k: v for k, v in data.items() if k in known}
        values["failures"] = tuple(
            ImportFailure(product_id=str(f.get("product_id", "")), reason=str(f.get("reason", "")))
            for f in data.get("failures") or []
        )
        return cls(**values)
