from __future__ import annotations

import pytest

from lpvault.domain.errors import (
    ExcessiveReduction,
    InsufficientAllowance,
    InsufficientBalance,
    InsufficientLiquidity,
    Unauthorized,
    ZeroAddress,
    ZeroAmount,
)
from lpvault.domain.events import EngineEventType
from lpvault.domain.fixed_point import ONE_UNIT
from lpvault.domain.models import ZERO_ADDRESS, VaultState
from lpvault.engine.vault import ShareVault
from lpvault.ledger.token import MAX_ALLOWANCE, FungibleToken


def _vault() -> tuple[FungibleToken, ShareVault]:
    asset = FungibleToken("USDC", minter="faucet")
    vault = ShareVault(asset, operator="operator")
    asset.approve("operator", vault.address, MAX_ALLOWANCE)
    return asset, vault


def _fund(asset: FungibleToken, vault: ShareVault, holder: str, amount: int) -> None:
    asset.mint("faucet", holder, amount)
    asset.approve(holder, vault.address, MAX_ALLOWANCE)


@pytest.mark.parametrize("assets", [1, 999, ONE_UNIT, 10**12])
def test_empty_vault_converts_one_to_one(assets: int) -> None:
    _, vault = _vault()

    assert vault.convert_to_shares(assets) == assets
    assert vault.preview_deposit(assets) == assets
    assert vault.share_price() == ONE_UNIT


@pytest.mark.parametrize("assets", [1, 7, ONE_UNIT, 123_456_789])
def test_deposit_then_redeem_loses_at_most_one_raw_unit(assets: int) -> None:
    asset, vault = _vault()
    _fund(asset, vault, "seed", 5 * ONE_UNIT)
    vault.deposit("seed", 5 * ONE_UNIT, "seed")
    _fund(asset, vault, "alice", assets)

    shares = vault.deposit("alice", assets, "alice")
    redeemed = vault.redeem("alice", shares, "alice")

    assert redeemed <= assets
    assert assets - redeemed <= 1
    assert asset.balance_of("alice") == redeemed


@pytest.mark.parametrize("assets", [3, 1_000, 77 * ONE_UNIT])
def test_round_trip_after_profit_never_returns_more_than_deposited(assets: int) -> None:
    asset, vault = _vault()
    _fund(asset, vault, "seed", 3 * ONE_UNIT)
    vault.deposit("seed", 3 * ONE_UNIT, "seed")
    vault.deploy_funds("operator", ONE_UNIT)
    vault.report_pnl("operator", ONE_UNIT // 3)
    raw_share_price = vault.convert_to_assets(1)
    _fund(asset, vault, "alice", assets)

    shares = vault.deposit("alice", assets, "alice")
    redeemed = vault.redeem("alice", shares, "alice")

    assert redeemed <= assets
    assert assets - redeemed <= raw_share_price + 1


@pytest.mark.parametrize("attacker_deposit", [1, ONE_UNIT])
def test_donation_after_dust_deposit_keeps_victim_value(attacker_deposit: int) -> None:
    asset, vault = _vault()
    _fund(asset, vault, "attacker", attacker_deposit + 10_000 * ONE_UNIT)
    vault.deposit("attacker", attacker_deposit, "attacker")
    asset.transfer("attacker", vault.address, 10_000 * ONE_UNIT)

    victim_assets = 1_000 * ONE_UNIT
    _fund(asset, vault, "victim", victim_assets)
    shares = vault.deposit("victim", victim_assets, "victim")

    assert shares > 0
    assert vault.convert_to_assets(shares) * 100 >= victim_assets * 99


def test_deploy_and_return_relocate_without_changing_total_assets() -> None:
    asset, vault = _vault()
    _fund(asset, vault, "alice", 1_000)
    vault.deposit("alice", 1_000, "alice")

    vault.deploy_funds("operator", 400)
    assert vault.total_assets() == 1_000
    assert vault.available_liquidity() == 600
    assert vault.managed_assets == 400
    assert asset.balance_of("operator") == 400

    vault.return_funds("operator", 150)
    assert vault.total_assets() == 1_000
    assert vault.available_liquidity() == 750
    assert vault.managed_assets == 250


def test_managed_assets_never_go_negative() -> None:
    asset, vault = _vault()
    _fund(asset, vault, "alice", 1_000)
    vault.deposit("alice", 1_000, "alice")
    vault.deploy_funds("operator", 400)

    with pytest.raises(ExcessiveReduction):
        vault.return_funds("operator", 401)
    with pytest.raises(ExcessiveReduction):
        vault.report_pnl("operator", -401)
    assert vault.managed_assets == 400

    vault.report_pnl("operator", -400)
    assert vault.managed_assets == 0
    assert vault.total_assets() == 600


def test_report_pnl_rebases_share_price() -> None:
    asset, vault = _vault()
    _fund(asset, vault, "alice", 10 * ONE_UNIT)
    vault.deposit("alice", 10 * ONE_UNIT, "alice")
    vault.deploy_funds("operator", 5 * ONE_UNIT)
    price_before = vault.share_price()

    vault.report_pnl("operator", 2 * ONE_UNIT)
    price_after_profit = vault.share_price()
    vault.report_pnl("operator", -4 * ONE_UNIT)

    assert price_after_profit > price_before
    assert vault.share_price() < price_before
    assert [event.type for event in vault.events][-2:] == [
        EngineEventType.PNL_REPORTED,
        EngineEventType.PNL_REPORTED,
    ]


def test_operator_actions_reject_other_callers_before_mutation() -> None:
    asset, vault = _vault()
    _fund(asset, vault, "alice", 1_000)
    vault.deposit("alice", 1_000, "alice")

    with pytest.raises(Unauthorized):
        vault.deploy_funds("alice", 0)
    with pytest.raises(Unauthorized):
        vault.return_funds("alice", 1)
    with pytest.raises(Unauthorized):
        vault.report_pnl("alice", 1)

    assert vault.managed_assets == 0
    assert vault.available_liquidity() == 1_000


def test_deploy_rejects_zero_and_more_than_pool() -> None:
    asset, vault = _vault()
    _fund(asset, vault, "alice", 1_000)
    vault.deposit("alice", 1_000, "alice")

    with pytest.raises(ZeroAmount):
        vault.deploy_funds("operator", 0)
    with pytest.raises(InsufficientLiquidity):
        vault.deploy_funds("operator", 1_001)
    with pytest.raises(ZeroAmount):
        vault.return_funds("operator", 0)


def test_redeem_fails_when_value_is_deployed() -> None:
    asset, vault = _vault()
    _fund(asset, vault, "alice", 1_000)
    shares = vault.deposit("alice", 1_000, "alice")
    vault.deploy_funds("operator", 900)

    with pytest.raises(InsufficientLiquidity):
        vault.redeem("alice", shares, "alice")

    assert vault.balance_of("alice") == shares
    assert vault.available_liquidity() == 100


def test_redeem_more_shares_than_held() -> None:
    asset, vault = _vault()
    _fund(asset, vault, "alice", 1_000)
    _fund(asset, vault, "bob", 1_000)
    vault.deposit("alice", 1_000, "alice")
    vault.deposit("bob", 1_000, "bob")

    with pytest.raises(InsufficientBalance):
        vault.redeem("alice", 1_500, "alice")

    assert vault.total_shares == 2_000
    assert vault.available_liquidity() == 2_000


def test_deposit_rejections_leave_state_untouched() -> None:
    asset, vault = _vault()
    _fund(asset, vault, "alice", ONE_UNIT)

    with pytest.raises(ZeroAmount):
        vault.deposit("alice", 0, "alice")
    with pytest.raises(ZeroAddress):
        vault.deposit("alice", 10, ZERO_ADDRESS)
    with pytest.raises(ZeroAmount):
        vault.redeem("alice", 0, "alice")

    asset.mint("faucet", "carol", 10)
    with pytest.raises(InsufficientAllowance):
        vault.deposit("carol", 10, "carol")

    assert vault.total_shares == 0
    assert vault.available_liquidity() == 0
    assert asset.balance_of("carol") == 10
    assert vault.events == []


def test_deposit_too_small_for_one_share_is_rejected() -> None:
    asset, vault = _vault()
    _fund(asset, vault, "alice", ONE_UNIT)
    vault.deposit("alice", ONE_UNIT, "alice")
    vault.deploy_funds("operator", ONE_UNIT)
    vault.report_pnl("operator", ONE_UNIT)
    _fund(asset, vault, "bob", 1)

    with pytest.raises(ZeroAmount):
        vault.deposit("bob", 1, "bob")

    assert asset.balance_of("bob") == 1


def test_deposit_credits_receiver_and_emits_event() -> None:
    asset, vault = _vault()
    _fund(asset, vault, "alice", 500)

    shares = vault.deposit("alice", 500, "bob")

    assert vault.balance_of("bob") == shares == 500
    assert vault.balance_of("alice") == 0
    event = vault.events[-1]
    assert event.type == EngineEventType.DEPOSIT
    assert event.payload == {"caller": "alice", "receiver": "bob", "assets": 500, "shares": 500}


def test_snapshot_restore() -> None:
    _, vault = _vault()
    vault.restore(VaultState(managed_assets=42))
    assert vault.snapshot() == VaultState(managed_assets=42)

    with pytest.raises(ValueError):
        vault.restore(VaultState(managed_assets=-1))


def test_virtual_offset_must_be_positive() -> None:
    with pytest.raises(ValueError):
        ShareVault(FungibleToken("USDC"), operator="operator", virtual_offset=0)
