"""
TikTok Shop Catalog Sync

Modules:
    common   - Shared utilities (logging, config loader, errors, encryption)
    models   - Data models (credentials, shops, products, results, run ledger)
    tiktok   - TikTok Shop Open API integration (signing, auth, shops, pager)
    catalog  - Local catalog reconciliation, bulk orchestration, run ledger
    service  - Operator-facing facade tying the pieces together
"""
