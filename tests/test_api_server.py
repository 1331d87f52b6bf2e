"""Round trip through the threaded HTTP server."""

from __future__ import annotations

import json
import threading
from pathlib import Path

import httpx
import pytest

from config.settings import Settings
from tradejournal.api import JournalHTTPServer, build_api
from tradejournal.auth import hash_password
from tradejournal.data.storage.sqlite_client import JournalDatabase


@pytest.fixture
def base_url(tmp_path: Path):
    credentials = tmp_path / "users.json"
    credentials.write_text(
        json.dumps(
            [
                {
                    "id": "user-1",
                    "username": "trader",
                    "displayName": "Trader",
                    "email": "trader@example.test",
                    "passwordHash": hash_password("pw", iterations=1000),
                }
            ]
        ),
        encoding="utf-8",
    )

    settings = Settings()
    settings.database.db_dir = tmp_path
    settings.server.credentials_path = credentials

    database = JournalDatabase(settings.database.sqlite_path)
    server = JournalHTTPServer(("127.0.0.1", 0), build_api(settings, database))
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()

    host, port = server.server_address[:2]
    yield f"http://{host}:{port}"

    server.shutdown()
    server.server_close()
    database.close()


def test_login_then_create_and_project_session(base_url: str) -> None:
    with httpx.Client(base_url=base_url, timeout=5.0) as client:
        response = client.get("/api/health")
        assert response.status_code == 200
        assert response.json()["success"] is True

        response = client.post("/api/auth/login", json={"username": "trader", "password": "pw"})
        assert response.status_code == 200
        user_id = response.json()["data"]["id"]

        headers = {"x-user-id": user_id}
        response = client.post(
            "/api/sessions",
            headers=headers,
            json={"id": "s-1", "name": "May", "capital": 1000, "totalTrades": 10, "accuracy": 50, "riskRewardRatio": 3},
        )
        assert response.status_code == 201

        response = client.get("/api/sessions/s-1/projection", headers=headers)
        assert response.status_code == 200
        assert response.json()["data"]["targetProfit"] == pytest.approx(11799.69, rel=2e-4)

        response = client.get("/api/trades")
        assert response.status_code == 401
        assert response.json() == {"success": False, "message": "User ID required"}

        response = client.delete("/api/sessions/missing", headers=headers)
        assert response.status_code == 404
