from datetime import datetime, timezone
from typing import Any, Literal, Optional
from uuid import uuid4

from pydantic import BaseModel, Field, field_validator
from pydantic.alias_generators import to_camel

from tradejournal.models.scenario import Scenario


_WIRE_CONFIG = {
    "alias_generator": to_camel,
    "populate_by_name": True,
    "extra": "ignore",
}


def _new_id() -> str:
    return str(uuid4())


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# Partial updates may omit a column but never clear a NOT NULL one.
def _reject_null(value: Any) -> Any:
    if value is None:
        raise ValueError("must not be null")
    return value


class Trade(BaseModel):
    model_config = _WIRE_CONFIG

    id: str
    user_id: str
    session_id: Optional[str] = None
    pair_name: str
    entry_price: float
    exit_price: Optional[float] = None
    investment: float
    date: str
    type: Literal["buy", "sell"]
    status: Literal["pending", "won", "lost"]
    profit_or_loss: float = 0.0
    profit_or_loss_percentage: float = 0.0
    balance: Optional[float] = None
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)

    def to_db_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "session_id": self.session_id,
            "pair_name": self.pair_name,
            "entry_price": self.entry_price,
            "exit_price": self.exit_price,
            "investment": self.investment,
            "date": self.date,
            "type": self.type,
            "status": self.status,
            "profit_or_loss": self.profit_or_loss,
            "profit_or_loss_percentage": self.profit_or_loss_percentage,
            "balance": self.balance,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }


class TradeCreate(BaseModel):
    model_config = _WIRE_CONFIG

    id: str = Field(default_factory=_new_id, min_length=1)
    session_id: Optional[str] = None
    pair_name: str = Field(min_length=1)
    entry_price: float
    exit_price: Optional[float] = None
    investment: float
    date: str
    type: Literal["buy", "sell"]
    status: Literal["pending", "won", "lost"]
    profit_or_loss: float = 0.0
    profit_or_loss_percentage: float = 0.0
    balance: Optional[float] = None

    def to_trade(self, user_id: str) -> Trade:
        now = _utcnow()
        return Trade(user_id=user_id, created_at=now, updated_at=now, **self.model_dump())


class TradeUpdate(BaseModel):
    model_config = _WIRE_CONFIG

    session_id: Optional[str] = None
    pair_name: Optional[str] = None
    entry_price: Optional[float] = None
    exit_price: Optional[float] = None
    investment: Optional[float] = None
    date: Optional[str] = None
    type: Optional[Literal["buy", "sell"]] = None
    status: Optional[Literal["pending", "won", "lost"]] = None
    profit_or_loss: Optional[float] = None
    profit_or_loss_percentage: Optional[float] = None
    balance: Optional[float] = None

    @field_validator(
        "pair_name",
        "entry_price",
        "investment",
        "date",
        "type",
        "status",
        "profit_or_loss",
        "profit_or_loss_percentage",
    )
    @classmethod
    def _not_null(cls, value: Any) -> Any:
        return _reject_null(value)

    def changes(self) -> dict[str, Any]:
        return self.model_dump(exclude_unset=True)


class BulkTradeCreate(BaseModel):
    model_config = _WIRE_CONFIG

    trades: list[TradeCreate]


class Session(BaseModel):
    model_config = _WIRE_CONFIG

    id: str
    user_id: str
    name: str
    capital: float = Field(gt=0)
    total_trades: int = Field(ge=0)
    accuracy: float = Field(ge=0.0, le=100.0)
    risk_reward_ratio: float = Field(gt=0)
    status: Literal["active", "completed"] = "active"
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)

    def to_scenario(self) -> Scenario:
        return Scenario(
            capital=self.capital,
            total_trades=self.total_trades,
            accuracy=self.accuracy,
            risk_reward_ratio=self.risk_reward_ratio,
        )

    def to_db_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "name": self.name,
            "capital": self.capital,
            "total_trades": self.total_trades,
            "accuracy": self.accuracy,
            "risk_reward_ratio": self.risk_reward_ratio,
            "status": self.status,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }


class SessionCreate(BaseModel):
    model_config = _WIRE_CONFIG

    id: str = Field(default_factory=_new_id, min_length=1)
    name: str = Field(min_length=1)
    capital: float = Field(gt=0)
    total_trades: int = Field(ge=0)
    accuracy: float = Field(ge=0.0, le=100.0)
    risk_reward_ratio: float = Field(gt=0)
    status: Literal["active", "completed"] = "active"

    def to_session(self, user_id: str) -> Session:
        now = _utcnow()
        return Session(user_id=user_id, created_at=now, updated_at=now, **self.model_dump())


class SessionUpdate(BaseModel):
    model_config = _WIRE_CONFIG

    name: Optional[str] = Field(default=None, min_length=1)
    capital: Optional[float] = Field(default=None, gt=0)
    total_trades: Optional[int] = Field(default=None, ge=0)
    accuracy: Optional[float] = Field(default=None, ge=0.0, le=100.0)
    risk_reward_ratio: Optional[float] = Field(default=None, gt=0)
    status: Optional[Literal["active", "completed"]] = None

    @field_validator("name", "capital", "total_trades", "accuracy", "risk_reward_ratio", "status")
    @classmethod
    def _not_null(cls, value: Any) -> Any:
        return _reject_null(value)

    def changes(self) -> dict[str, Any]:
        return self.model_dump(exclude_unset=True)


class Calculation(BaseModel):
    model_config = _WIRE_CONFIG

    id: str
    user_id: str
    type: str
    inputs: dict[str, Any]
    result: Any
    created_at: datetime = Field(default_factory=_utcnow)


class CalculationCreate(BaseModel):
    model_config = _WIRE_CONFIG

    id: str = Field(default_factory=_new_id, min_length=1)
    type: str = Field(min_length=1)
    inputs: dict[str, Any]
    result: Any

    def to_calculation(self, user_id: str) -> Calculation:
        return Calculation(user_id=user_id, created_at=_utcnow(), **self.model_dump())


class UserIdentity(BaseModel):
    model_config = _WIRE_CONFIG

    id: str
    username: str
    display_name: str
    email: str


class LoginRequest(BaseModel):
    model_config = _WIRE_CONFIG

    username: str = ""
    password: str = ""


class ApiResponse(BaseModel):
    success: bool
    message: str = ""
    data: Any = None

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"success": self.success, "message": self.message}
        if self.data is not None:
            payload["data"] = self.data
        return payload
