from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any
from uuid import uuid4


class EngineEventType(StrEnum):
    DEPOSIT = "DEPOSIT"
    REDEEM = "REDEEM"
    FUNDS_DEPLOYED = "FUNDS_DEPLOYED"
    FUNDS_RETURNED = "FUNDS_RETURNED"
    PNL_REPORTED = "PNL_REPORTED"
    TOKENS_BOUGHT = "TOKENS_BOUGHT"
    TOKENS_SOLD = "TOKENS_SOLD"
    TRANSFER = "TRANSFER"
    APPROVAL = "APPROVAL"


@dataclass(frozen=True)
class EngineEvent:
    engine: str
    type: EngineEventType
    payload: dict[str, Any]
    event_id: str = field(default_factory=lambda: uuid4().hex)
    ts: datetime = field(default_factory=lambda: datetime.now(UTC))

    def as_log_payload(self) -> dict[str, Any]:
        return {
            "event_id": self.event_id,
            "engine": self.engine,
            "event_type": str(self.type),
            **{key: str(value) for key, value in self.payload.items()},
        }
