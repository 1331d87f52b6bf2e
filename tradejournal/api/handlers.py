"""
Journal API - Routes journal requests to the store, credentials and growth model.

The dispatcher is transport-agnostic: it takes the method, path, headers and
raw body of a request and returns an HTTP status plus the JSON envelope
`{"success": bool, "message": str, "data": ...}`.
"""
import json
import math
import re
from dataclasses import dataclass, field
from http import HTTPStatus
from typing import Any, Callable, Mapping, Optional
from urllib.parse import urlsplit

from loguru import logger
from pydantic import BaseModel, ValidationError

from tradejournal.auth import CredentialStore
from tradejournal.data.storage.sqlite_client import JournalStore
from tradejournal.growth import GrowthModel
from tradejournal.models import (
    ApiResponse,
    BulkTradeCreate,
    CalculationCreate,
    LoginRequest,
    SessionCreate,
    SessionUpdate,
    TradeCreate,
    TradeUpdate,
)
from tradejournal.utils.exceptions import (
    AuthenticationError,
    InvalidScenarioError,
    RecordNotFoundError,
    StorageError,
)


USER_HEADER = "x-user-id"


class RequestError(Exception):
    """Raised by route handlers to answer with a specific status."""

    def __init__(self, status: HTTPStatus, message: str) -> None:
        self.status = status
        self.message = message
        super().__init__(message)


@dataclass
class Request:
    method: str
    path: str
    headers: dict[str, str]
    body: bytes = b""
    params: dict[str, str] = field(default_factory=dict)
    user_id: str = ""

    def json(self) -> dict[str, Any]:
        if not self.body or not self.body.strip():
            return {}
        try:
            document = json.loads(self.body)
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            raise RequestError(HTTPStatus.BAD_REQUEST, "Invalid JSON body") from exc
        if not isinstance(document, dict):
            raise RequestError(HTTPStatus.BAD_REQUEST, "Request body must be a JSON object")
        return document


Response = tuple[HTTPStatus, ApiResponse]
Handler = Callable[[Request], Response]


@dataclass(frozen=True)
class Route:
    method: str
    pattern: re.Pattern
    handler_name: str
    requires_user: bool = True
    # Message returned with a 500 when the store fails.
    failure_message: str = "Request failed"


def _route(method: str, path: str, handler_name: str, failure: str = "Request failed", requires_user: bool = True) -> Route:
    pattern = re.compile("^" + re.sub(r"\{(\w+)\}", r"(?P<\1>[^/]+)", path) + "$")
    return Route(method, pattern, handler_name, requires_user, failure)


ROUTES: list[Route] = [
    _route("GET", "/api/health", "health", requires_user=False),
    _route("POST", "/api/auth/login", "login", "Login failed. Please try again.", requires_user=False),
    _route("GET", "/api/auth/verify", "verify", requires_user=False),
    _route("GET", "/api/trades", "list_trades", "Failed to fetch trades"),
    _route("POST", "/api/trades", "create_trade", "Failed to create trade"),
    _route("POST", "/api/trades/bulk", "create_trades", "Failed to create trades"),
    _route("GET", "/api/trades/session/{session_id}", "list_session_trades", "Failed to fetch session trades"),
    _route("PUT", "/api/trades/{record_id}", "update_trade", "Failed to update trade"),
    _route("DELETE", "/api/trades/{record_id}", "delete_trade", "Failed to delete trade"),
    _route("GET", "/api/sessions", "list_sessions", "Failed to fetch sessions"),
    _route("POST", "/api/sessions", "create_session", "Failed to create session"),
    _route("GET", "/api/sessions/{record_id}/projection", "project_session", "Failed to project session"),
    _route("PUT", "/api/sessions/{record_id}", "update_session", "Failed to update session"),
    _route("DELETE", "/api/sessions/{record_id}", "delete_session", "Failed to delete session"),
    _route("GET", "/api/calculations", "list_calculations", "Failed to fetch calculations"),
    _route("POST", "/api/calculations", "create_calculation", "Failed to create calculation"),
    _route("DELETE", "/api/calculations/{record_id}", "delete_calculation", "Failed to delete calculation"),
]


def _dump(record: BaseModel) -> dict[str, Any]:
    return record.model_dump(mode="json", by_alias=True)


def _validation_message(exc: ValidationError) -> str:
    fields = sorted({".".join(str(part) for part in err["loc"]) or "body" for err in exc.errors()})
    return f"Invalid request: {', '.join(fields)}"


def _ok(message: str = "", data: Any = None, status: HTTPStatus = HTTPStatus.OK) -> Response:
    return status, ApiResponse(success=True, message=message, data=data)


class JournalAPI:
    """Request dispatcher for the trade journal."""

    def __init__(
        self,
        store: JournalStore,
        credentials: CredentialStore,
        growth_model: GrowthModel | None = None,
    ):
        self.store = store
        self.credentials = credentials
        self.growth_model = growth_model or GrowthModel()

    def dispatch(
        self,
        method: str,
        path: str,
        headers: Mapping[str, str] | None = None,
        body: bytes | str | None = None,
    ) -> tuple[HTTPStatus, dict[str, Any]]:
        """
        Handle one request.

        Args:
            method: HTTP method
            path: Request path, query string allowed
            headers: Request headers (matched case-insensitively)
            body: Raw request body

        Returns:
            (status, JSON envelope)
        """
        if isinstance(body, str):
            body = body.encode("utf-8")

        request = Request(
            method=method.upper(),
            path=urlsplit(path).path.rstrip("/") or "/",
            headers={str(k).lower(): str(v) for k, v in (headers or {}).items()},
            body=body or b"",
        )

        route, params, path_matched = self._match(request)
        if route is None:
            if path_matched:
                return self._error(HTTPStatus.METHOD_NOT_ALLOWED, "Method not allowed")
            return self._error(HTTPStatus.NOT_FOUND, "Route not found")

        request.params = params

        if route.requires_user:
            user_id = request.headers.get(USER_HEADER, "").strip()
            if not user_id:
                return self._error(HTTPStatus.UNAUTHORIZED, "User ID required")
            request.user_id = user_id

        handler: Handler = getattr(self, f"_{route.handler_name}")

        try:
            status, response = handler(request)
        except RequestError as exc:
            return self._error(exc.status, exc.message)
        except ValidationError as exc:
            return self._error(HTTPStatus.BAD_REQUEST, _validation_message(exc))
        except InvalidScenarioError as exc:
            return self._error(HTTPStatus.BAD_REQUEST, str(exc))
        except AuthenticationError as exc:
            return self._error(HTTPStatus.UNAUTHORIZED, str(exc))
        except RecordNotFoundError as exc:
            return self._error(HTTPStatus.NOT_FOUND, str(exc))
        except StorageError as exc:
            logger.error(f"{request.method} {request.path} failed: {exc}")
            return self._error(HTTPStatus.INTERNAL_SERVER_ERROR, route.failure_message)

        logger.debug(f"{request.method} {request.path} -> {status.value}")
        return status, response.to_payload()

    def _match(self, request: Request) -> tuple[Optional[Route], dict[str, str], bool]:
        path_matched = False
        for route in ROUTES:
            match = route.pattern.match(request.path)
            if match is None:
                continue
            path_matched = True
            if route.method == request.method:
                return route, match.groupdict(), True
        return None, {}, path_matched

    @staticmethod
    def _error(status: HTTPStatus, message: str) -> tuple[HTTPStatus, dict[str, Any]]:
        return status, ApiResponse(success=False, message=message).to_payload()

    # Service

    def _health(self, request: Request) -> Response:
        return _ok("Trade journal API is running", {"status": "ok"})

    def _login(self, request: Request) -> Response:
        login = LoginRequest.model_validate(request.json())
        if not login.username.strip() or not login.password:
            raise RequestError(HTTPStatus.BAD_REQUEST, "Username and password are required")

        identity = self.credentials.verify(login.username, login.password)
        logger.info(f"User {identity.id} logged in")
        return _ok("Login successful", _dump(identity))

    def _verify(self, request: Request) -> Response:
        user_id = request.headers.get(USER_HEADER, "").strip()
        if not user_id:
            raise RequestError(HTTPStatus.UNAUTHORIZED, "Not authenticated")

        identity = self.credentials.get(user_id)
        if identity is None:
            raise RequestError(HTTPStatus.UNAUTHORIZED, "Invalid session")
        return _ok("Session valid", _dump(identity))

    # Trades

    def _list_trades(self, request: Request) -> Response:
        trades = self.store.list_trades(request.user_id)
        return _ok(data=[_dump(trade) for trade in trades])

    def _list_session_trades(self, request: Request) -> Response:
        trades = self.store.list_session_trades(request.user_id, request.params["session_id"])
        return _ok(data=[_dump(trade) for trade in trades])

    def _create_trade(self, request: Request) -> Response:
        payload = TradeCreate.model_validate(request.json())
        trade = self.store.create_trade(request.user_id, payload)
        return _ok("Trade created successfully", _dump(trade), HTTPStatus.CREATED)

    def _create_trades(self, request: Request) -> Response:
        document = request.json()
        if not isinstance(document.get("trades"), list):
            raise RequestError(HTTPStatus.BAD_REQUEST, "Trades array is required")

        bulk = BulkTradeCreate.model_validate(document)
        trades = self.store.create_trades(request.user_id, bulk.trades)
        return _ok("Trades created successfully", [_dump(trade) for trade in trades], HTTPStatus.CREATED)

    def _update_trade(self, request: Request) -> Response:
        update = TradeUpdate.model_validate(request.json())
        trade = self.store.update_trade(request.user_id, request.params["record_id"], update)
        return _ok("Trade updated successfully", _dump(trade))

    def _delete_trade(self, request: Request) -> Response:
        self.store.delete_trade(request.user_id, request.params["record_id"])
        return _ok("Trade deleted successfully")

    # Sessions

    def _list_sessions(self, request: Request) -> Response:
        sessions = self.store.list_sessions(request.user_id)
        return _ok(data=[_dump(session) for session in sessions])

    def _create_session(self, request: Request) -> Response:
        payload = SessionCreate.model_validate(request.json())
        session = self.store.create_session(request.user_id, payload)
        return _ok("Session created successfully", _dump(session), HTTPStatus.CREATED)

    def _update_session(self, request: Request) -> Response:
        update = SessionUpdate.model_validate(request.json())
        session = self.store.update_session(request.user_id, request.params["record_id"], update)
        return _ok("Session updated successfully", _dump(session))

    def _delete_session(self, request: Request) -> Response:
        self.store.delete_session(request.user_id, request.params["record_id"])
        return _ok("Session deleted successfully")

    def _project_session(self, request: Request) -> Response:
        session = self.store.get_session(request.user_id, request.params["record_id"])
        scenario = session.to_scenario()
        result = self.growth_model.project(scenario)
        params = scenario.kelly_parameters

        message = ""
        final_balance: Optional[float] = result.final_balance
        target_profit: Optional[float] = result.profit
        if not math.isfinite(result.final_balance):
            logger.warning(f"Projection for session {session.id} overflowed after {scenario.total_trades} trades")
            message = "Projected balance is too large to represent"
            final_balance = target_profit = None

        return _ok(
            message,
            data={
                "sessionId": session.id,
                "kelly": params.kelly,
                "expectedValue": params.expected_value,
                "hasEdge": result.has_edge,
                "kellyFraction": result.kelly_fraction,
                "perTradeReturn": result.per_trade_return,
                "finalBalance": final_balance,
                "targetProfit": target_profit,
            }
        )

    # Calculations

    def _list_calculations(self, request: Request) -> Response:
        calculations = self.store.list_calculations(request.user_id)
        return _ok(data=[_dump(calculation) for calculation in calculations])

    def _create_calculation(self, request: Request) -> Response:
        payload = CalculationCreate.model_validate(request.json())
        calculation = self.store.create_calculation(request.user_id, payload)
        return _ok("Calculation saved successfully", _dump(calculation), HTTPStatus.CREATED)

    def _delete_calculation(self, request: Request) -> Response:
        self.store.delete_calculation(request.user_id, request.params["record_id"])
        return _ok("Calculation deleted successfully")
