from __future__ import annotations

from collections.abc import Mapping


class EngineError(RuntimeError):
    """Raised when an engine operation is rejected. Nothing has been committed."""

    code = "ENGINE_ERROR"

    def __init__(
        self,
        message: str,
        *,
        operation: str | None = None,
        details: Mapping[str, object] | None = None,
    ) -> None:
        super().__init__(message)
        self.operation = operation
        self.details = dict(details or {})

    def to_payload(self) -> dict[str, object]:
        return {
            "error": self.code,
            "reason": str(self),
            "operation": self.operation,
            "details": {key: str(value) for key, value in self.details.items()},
        }


class ZeroAmount(EngineError):
    code = "ZERO_AMOUNT"


class ZeroAddress(EngineError):
    code = "ZERO_ADDRESS"


class InsufficientLiquidity(EngineError):
    code = "INSUFFICIENT_LIQUIDITY"


class ExcessiveReduction(EngineError):
    code = "EXCESSIVE_REDUCTION"


class InsufficientTokens(EngineError):
    code = "INSUFFICIENT_TOKENS"


class Unauthorized(EngineError):
    code = "UNAUTHORIZED"


class InsufficientBalance(EngineError):
    code = "INSUFFICIENT_BALANCE"


class InsufficientAllowance(EngineError):
    code = "INSUFFICIENT_ALLOWANCE"


class ReentrantCall(EngineError):
    code = "REENTRANT_CALL"
