from typing import Any


class TradeJournalError(Exception):
    pass


class ConfigError(TradeJournalError):
    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)

    def __str__(self) -> str:
        return f"Configuration error: {self.message}"


class InvalidScenarioError(TradeJournalError):
    def __init__(self, field: str, value: Any, reason: str) -> None:
        self.field = field
        self.value = value
        self.reason = reason
        super().__init__(f"{field}={value!r}: {reason}")

    def __str__(self) -> str:
        return f"Invalid scenario: {self.field}={self.value!r} ({self.reason})"


class InvalidCaseDataError(TradeJournalError):
    def __init__(self, message: str, source: str = "") -> None:
        self.message = message
        self.source = source
        super().__init__(message)

    def __str__(self) -> str:
        source_info = f" in {self.source}" if self.source else ""
        return f"Invalid calibration case data{source_info}: {self.message}"


class AuthenticationError(TradeJournalError):
    def __init__(self, message: str = "Invalid username or password") -> None:
        self.message = message
        super().__init__(message)

    def __str__(self) -> str:
        return self.message


class RecordNotFoundError(TradeJournalError):
    def __init__(self, kind: str, record_id: str) -> None:
        self.kind = kind
        self.record_id = record_id
        super().__init__(f"{kind} not found: {record_id}")

    def __str__(self) -> str:
        return f"{self.kind.capitalize()} {self.record_id} not found"


class StorageError(TradeJournalError):
    def __init__(self, message: str, operation: str = "") -> None:
        self.message = message
        self.operation = operation
        super().__init__(message)

    def __str__(self) -> str:
        op_info = f" during {self.operation}" if self.operation else ""
        return f"Storage failure{op_info}: {self.message}"
