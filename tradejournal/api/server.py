"""
Journal HTTP server - stdlib threading server in front of JournalAPI.
"""

from __future__ import annotations

import json
from http import HTTPStatus
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Any

from loguru import logger

from config.settings import Settings
from tradejournal.api.handlers import JournalAPI
from tradejournal.auth import CredentialStore, InMemoryCredentialStore
from tradejournal.data.storage.sqlite_client import JournalDatabase, JournalStore
from tradejournal.growth import GrowthModel, build_policy


class JournalHTTPServer(ThreadingHTTPServer):
    """HTTP server carrying the dispatcher for request handlers."""

    daemon_threads = True

    def __init__(self, server_address: tuple[str, int], api: JournalAPI) -> None:
        super().__init__(server_address, JournalRequestHandler)
        self.api = api


class JournalRequestHandler(BaseHTTPRequestHandler):
    """Translate HTTP requests into dispatcher calls."""

    server: JournalHTTPServer

    def do_GET(self) -> None:  # noqa: N802 (BaseHTTPRequestHandler signature)
        self._handle()

    def do_POST(self) -> None:  # noqa: N802
        self._handle()

    def do_PUT(self) -> None:  # noqa: N802
        self._handle()

    def do_DELETE(self) -> None:  # noqa: N802
        self._handle()

    def log_message(self, fmt: str, *args: Any) -> None:
        logger.debug("journal-api: " + fmt, *args)

    def _handle(self) -> None:
        length = int(self.headers.get("Content-Length") or 0)
        body = self.rfile.read(length) if length > 0 else b""
        status, payload = self.server.api.dispatch(
            self.command, self.path, dict(self.headers.items()), body
        )
        self._send_json(status, payload)

    def _send_json(self, status: HTTPStatus, payload: dict[str, Any]) -> None:
        raw = json.dumps(payload, allow_nan=False).encode("utf-8")
        self.send_response(status)
        self.send_header("Content-Type", "application/json")
        self.send_header("Cache-Control", "no-store")
        self.send_header("Content-Length", str(len(raw)))
        self.end_headers()
        self.wfile.write(raw)


def build_credentials(settings: Settings) -> CredentialStore:
    path = settings.server.credentials_path
    if path is None:
        logger.warning("No credentials file configured; every login will be rejected")
        return InMemoryCredentialStore()
    return InMemoryCredentialStore.from_file(path)


def build_api(settings: Settings, database: JournalDatabase) -> JournalAPI:
    """Wire the store, credentials and growth model from settings."""
    database.initialize_schema()
    policy = build_policy(settings.growth.default_policy, settings.growth.constant_fraction)
    return JournalAPI(
        store=JournalStore(database),
        credentials=build_credentials(settings),
        growth_model=GrowthModel(policy),
    )


def run_api_server(settings: Settings) -> None:
    """Run the journal API until interrupted."""
    database = JournalDatabase(settings.database.sqlite_path)
    api = build_api(settings, database)

    host, port = settings.server.host, settings.server.port
    server = JournalHTTPServer((host, port), api)
    logger.info(f"Starting journal API at http://{host}:{port}")

    try:
        server.serve_forever()
    except KeyboardInterrupt:
        logger.info("Journal API stopped by user")
    finally:
        server.server_close()
        database.close()
