#!/usr/bin/env python3
"""
TikTok Shop Catalog Sync

Command-line surface for the sync engine: configure credentials, authorize
a seller, pick a shop, preview and import products, and read run history.

State (encrypted credentials, run history, local catalog) lives in JSON
files under --state-dir. Secrets are encrypted with APP_SECRETS_ENCRYPTION_KEY
(read from the environment or a .env file).

Usage:
    python3 tiktok_shop.py configure --app-key KEY --app-secret SECRET
    python3 tiktok_shop.py authorize --port 8888
    python3 tiktok_shop.py shops
    python3 tiktok_shop.py preview --page-size 20
    python3 tiktok_shop.py import-all --max-products 500 --dry-run
    python3 tiktok_shop.py history --limit 5

    # Offline, against the in-memory fixture provider
    python3 tiktok_shop.py --fixture configure --app-key demo --app-secret demo
"""

import argparse
import http.server
import logging
import secrets
import socketserver
import sys
import threading
import urllib.parse
import webbrowser
from dataclasses import replace
from pathlib import Path

from dotenv import load_dotenv

from shopsync.catalog.repository import JsonCatalogRepository, JsonSettingsStore
from shopsync.common.config_loader import load_sync_settings
from shopsync.common.errors import SyncError
from shopsync.common.log_config import setup_logging
from shopsync.common.pricing import format_cents, price_to_cents
from shopsync.service import TikTokShopService

logger = logging.getLogger("shopsync.cli")

DEFAULT_STATE_DIR = Path(__file__).parent / "data"


class OAuthCallbackHandler(http.server.BaseHTTPRequestHandler):
    """Handle the OAuth redirect from TikTok Shop."""

    authorization_code = None
    state_received = None
    error = None

    def do_GET(self):
        """Handle GET request (OAuth callback)."""
        parsed = urllib.parse.urlparse(self.path)
        params = urllib.parse.parse_qs(parsed.query)

        if 'code' in params:
            OAuthCallbackHandler.authorization_code = params['code'][0]
            OAuthCallbackHandler.state_received = params.get('state', [None])[0]
            status, title, body = 200, "Authorization Successful", "You can close this window and return to the terminal."
        else:
            OAuthCallbackHandler.error = params.get('error', ['Unknown error'])[0]
            status, title, body = 400, "Authorization Failed", f"Error: {OAuthCallbackHandler.error}"

        self.send_response(status)
        self.send_header('Content-type', 'text/html')
        self.end_headers()
        self.wfile.write(
            f"<html><head><title>{title}</title></head>"
            f"<body style=\"font-family: Arial, sans-serif; text-align: center; padding-top: 50px;\">"
            f"<h1>{title}</h1><p>{body}</p></body></html>".encode()
        )

    def log_message(self, format, *args):
        """Suppress default logging."""
        pass


def wait_for_authorization_code(service: TikTokShopService, port: int, timeout: int = 300) -> str:
    """Open the authorize URL in a browser and wait for the callback."""
    redirect_uri = f"http://localhost:{port}/callback"
    state = secrets.token_urlsafe(16)
    authorize_url, state = service.build_authorize_url(state=state, redirect_uri=redirect_uri)

    OAuthCallbackHandler.authorization_code = None
    OAuthCallbackHandler.state_received = None
    OAuthCallbackHandler.error = None

    server = socketserver.TCPServer(("", port), OAuthCallbackHandler)
    server_thread = threading.Thread(target=server.handle_request)
    server_thread.start()

    print(f"\nRedirect URI (must be registered on the app): {redirect_uri}")
    print(f"If the browser doesn't open, visit:\n{authorize_url}\n")
    webbrowser.open(authorize_url)

    print("Waiting for authorization...")
    server_thread.join(timeout=timeout)
    server.server_close()

    if OAuthCallbackHandler.error:
        raise SyncError(f"Authorization failed: {OAuthCallbackHandler.error}")
    if not OAuthCallbackHandler.authorization_code:
        raise SyncError("No authorization code received. Did you authorize the app?")
    if OAuthCallbackHandler.state_received != state:
        raise SyncError("State mismatch - possible CSRF attack")

    return OAuthCallbackHandler.authorization_code


def print_summary(service: TikTokShopService) -> None:
    summary = service.config_summary()
    print(f"  State:          {summary.state}")
    print(f"  App key:        {summary.app_key or '-'}")
    print(f"  Shop:           {summary.shop_name or '-'} ({summary.shop_id or '-'})")
    print(f"  Shop cipher:    {summary.shop_cipher or '-'}")
    print(f"  Seller:         {summary.seller_name or '-'} {summary.seller_base_region or ''}")
    print(f"  Access token:   {'yes' if summary.has_access_token else 'no'}"
          f" (expires {summary.access_token_expires_at or 'unknown'})")
    print(f"  Refresh token:  {'yes' if summary.has_refresh_token else 'no'}"
          f" (expires {summary.refresh_token_expires_at or 'unknown'})")


def print_import_result(result) -> None:
    mode = "DRY RUN" if result.dry_run else "COMMIT"
    print("\n" + "=" * 60)
    print(f"Import [{mode}] {'OK' if result.success else 'FAILED'}")
    print("=" * 60)
    print(f"  Created:  {result.created}")
    print(f"  Updated:  {result.updated}")
    print(f"  Skipped:  {result.skipped}")
    for attr in ("pages_fetched", "products_fetched", "truncated", "next_page_token"):
        if hasattr(result, attr):
            print(f"  {attr.replace('_', ' ').capitalize() + ':':<18}{getattr(result, attr)}")
    if result.error:
        print(f"  Error:    {result.error}")
    if result.failures:
        print("\n  Skipped products:")
        for failure in result.failures:
            print(f"    {failure.product_id}: {failure.reason}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="TikTok Shop catalog sync")
    parser.add_argument("--state-dir", default=str(DEFAULT_STATE_DIR),
                        help="Directory for settings/catalog JSON files (default: ./data)")
    parser.add_argument("--fixture", action="store_true",
                        help="Use the in-memory fixture provider instead of the live API")
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging")
    parser.add_argument("--quiet", "-q", action="store_true", help="Warnings only")

    sub = parser.add_subparsers(dest="command", required=True)

    configure = sub.add_parser("configure", help="Store app credentials")
    configure.add_argument("--app-key")
    configure.add_argument("--app-secret")
    configure.add_argument("--shop-id")
    configure.add_argument("--shop-cipher")
    configure.add_argument("--access-token")
    configure.add_argument("--refresh-token")

    sub.add_parser("status", help="Show stored configuration")

    authorize_url = sub.add_parser("authorize-url", help="Print the seller authorization URL")
    authorize_url.add_argument("--redirect-uri")

    authorize = sub.add_parser("authorize", help="Run the browser authorization flow")
    authorize.add_argument("--port", "-p", type=int, default=8888,
                           help="Local port for the OAuth callback (default: 8888)")

    exchange = sub.add_parser("exchange-code", help="Exchange an authorization code for tokens")
    exchange.add_argument("code")

    sub.add_parser("refresh", help="Refresh the access token")
    sub.add_parser("verify", help="Verify credentials against the API")
    sub.add_parser("shops", help="List authorized shops and apply selection")

    select = sub.add_parser("select-shop", help="Bind a shop by cipher")
    select.add_argument("cipher")

    for name, help_text in (("preview", "Fetch one page without importing"),
                            ("import", "Fetch and import one page")):
        page_parser = sub.add_parser(name, help=help_text)
        page_parser.add_argument("--page-size", type=int)
        page_parser.add_argument("--page-token")
        if name == "import":
            page_parser.add_argument("--dry-run", action="store_true")

    import_all = sub.add_parser("import-all", help="Import the whole catalog under budgets")
    import_all.add_argument("--page-size", type=int)
    import_all.add_argument("--max-pages", type=int)
    import_all.add_argument("--max-products", type=int)
    import_all.add_argument("--page-token", help="Resume from a previous run's next page token")
    import_all.add_argument("--dry-run", action="store_true")

    history = sub.add_parser("history", help="Show recent import runs")
    history.add_argument("--limit", type=int, default=10)

    sub.add_parser("disconnect", help="Remove all stored credentials and history")
    return parser


def run_command(service: TikTokShopService, args) -> int:
    """Dispatch one subcommand. Returns the process exit code."""
    command = args.command

    if command == "configure":
        service.configure(
            app_key=args.app_key,
            app_secret=args.app_secret,
            shop_id=args.shop_id,
            shop_cipher=args.shop_cipher,
            access_token=args.access_token,
            refresh_token=args.refresh_token,
        )
        print("\n✓ Configuration saved")
        print_summary(service)
        return 0

    if command == "status":
        print_summary(service)
        return 0

    if command == "authorize-url":
        url, state = service.build_authorize_url(redirect_uri=args.redirect_uri)
        print(f"Authorize URL: {url}")
        print(f"State:         {state}")
        return 0

    if command in ("authorize", "exchange-code"):
        code = args.code if command == "exchange-code" else wait_for_authorization_code(service, args.port)
        result = service.exchange_code(code)
        if not result.success:
            print(f"\n✗ Code exchange failed: {result.error}")
            return 1
        print("\n✓ Tokens stored")
        print_summary(service)
        return 0

    if command == "refresh":
        result = service.refresh_access_token()
        if not result.success:
            print(f"\n✗ Refresh failed: {result.error}")
            return 1
        print("\n✓ Access token refreshed")
        print_summary(service)
        return 0

    if command == "verify":
        result = service.verify()
        if not result.success:
            print(f"\n✗ Verification failed: {result.error}")
            return 1
        print(f"\n✓ Connected to: {result.shop_name}")
        return 0

    if command in ("shops", "select-shop"):
        result = service.sync_authorized_shops() if command == "shops" else service.select_shop(args.cipher)
        if not result.success:
            print(f"\n✗ {result.error}")
            return 1
        for shop in result.shops:
            marker = "*" if result.selected and shop.cipher == result.selected.cipher else " "
            print(f" {marker} {shop.name:<30} {shop.region:<4} id={shop.id} cipher={shop.cipher}")
        if result.selected:
            print(f"\nBound shop: {result.selected.name} ({result.selected.cipher})")
        return 0

    if command == "preview":
        result = service.preview_products(page_size=args.page_size, page_token=args.page_token)
        if not result.success:
            print(f"\n✗ Preview failed: {result.error}")
            return 1
        print(f"{'ID':<22} | {'Status':<10} | {'SKU':<16} | {'Price':>12} | Title")
        print("-" * 90)
        for product in result.products:
            cents = price_to_cents(product.price, product.currency)
            price = format_cents(cents, product.currency) if cents is not None else "N/A"
            print(f"{product.id[:22]:<22} | {product.status[:10]:<10} | "
                  f"{(product.seller_sku or '-')[:16]:<16} | {price:>12} | {product.title[:40]}")
        print(f"\nTotal: {result.total_count if result.total_count is not None else 'unknown'}"
              f"  Next page token: {result.next_page_token or '-'}")
        return 0

    if command == "import":
        result = service.import_page(page_size=args.page_size, page_token=args.page_token, dry_run=args.dry_run)
        print_import_result(result)
        return 0 if result.success else 1

    if command == "import-all":
        result = service.import_all(
            page_size=args.page_size,
            max_pages=args.max_pages,
            max_products=args.max_products,
            dry_run=args.dry_run,
            page_token=args.page_token,
        )
        print_import_result(result)
        return 0 if result.success else 1

    if command == "history":
        entries = service.run_history(limit=args.limit)
        if not entries:
            print("No import runs recorded.")
            return 0
        print(f"{'Finished':<26} | {'Scope':<5} | {'Mode':<7} | {'OK':<3} | "
              f"{'Created':>7} | {'Updated':>7} | {'Skipped':>7} | Next token")
        print("-" * 100)
        for entry in entries:
            print(f"{entry.finished_at[:26]:<26} | {entry.scope:<5} | {entry.mode:<7} | "
                  f"{'yes' if entry.success else 'no':<3} | {entry.created:>7} | {entry.updated:>7} | "
                  f"{entry.skipped:>7} | {entry.next_page_token or '-'}")
        return 0

    if command == "disconnect":
        service.disconnect()
        print("\n✓ TikTok Shop configuration removed")
        return 0

    raise ValueError(f"Unknown command: {command}")


def main(argv=None) -> int:
    load_dotenv()

    parser = build_parser()
    args = parser.parse_args(argv)
    setup_logging(verbose=args.verbose, quiet=args.quiet)

    settings = load_sync_settings()
    if args.fixture:
        settings = replace(settings, use_fixture=True)

    state_dir = Path(args.state_dir)
    store = JsonSettingsStore(state_dir / "tiktok_settings.json")
    repository = JsonCatalogRepository(state_dir / "catalog.json")

    try:
        service = TikTokShopService.build(settings, store, repository)
    except SyncError as e:
        print(f"\n✗ Error: {e}")
        return 1

    try:
        return run_command(service, args)
    except SyncError as e:
        print(f"\n✗ Error: {e}")
        return 1
    finally:
        service.close()


if __name__ == "__main__":
    sys.exit(main())
