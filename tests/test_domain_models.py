from __future__ import annotations

from lpvault.domain.errors import EngineError, InsufficientLiquidity, ReentrantCall
from lpvault.domain.events import EngineEvent, EngineEventType
from lpvault.domain.models import ZERO_ADDRESS, is_unset_address, normalize_address


def test_error_payload_is_json_friendly() -> None:
    exc = InsufficientLiquidity(
        "redeem needs 5 but pool holds 1",
        operation="redeem",
        details={"assets": 5, "available_liquidity": 1},
    )

    assert isinstance(exc, EngineError)
    assert exc.to_payload() == {
        "error": "INSUFFICIENT_LIQUIDITY",
        "reason": "redeem needs 5 but pool holds 1",
        "operation": "redeem",
        "details": {"assets": "5", "available_liquidity": "1"},
    }
    assert ReentrantCall("nested").to_payload()["details"] == {}


def test_event_log_payload_flattens_payload() -> None:
    event = EngineEvent(engine="curve", type=EngineEventType.TOKENS_BOUGHT, payload={"tokens": 10})

    payload = event.as_log_payload()

    assert payload["event_type"] == "TOKENS_BOUGHT"
    assert payload["engine"] == "curve"
    assert payload["tokens"] == "10"
    assert len(payload["event_id"]) == 32


def test_address_normalisation() -> None:
    assert normalize_address(" 0xABC ") == "0xabc"
    assert normalize_address("Alice") == "Alice"
    assert is_unset_address(None)
    assert is_unset_address("   ")
    assert is_unset_address(ZERO_ADDRESS.upper().replace("0X", "0x"))
    assert not is_unset_address("vault")
