from __future__ import annotations

from dataclasses import asdict, dataclass

from lpvault.domain.fixed_point import format_units
from lpvault.runtime import VaultSystem


@dataclass(frozen=True)
class MarketState:
    vault_total_assets: int
    vault_available_liquidity: int
    vault_managed_assets: int
    vault_share_price: int
    vault_total_shares: int
    curve_price: int
    curve_total_issued: int
    curve_reserve_balance: int
    operator_stable_balance: int
    operator_token_balance: int

    def as_dict(self) -> dict[str, str]:
        return {key: format_units(value) for key, value in asdict(self).items()}


@dataclass(frozen=True)
class ActionFeasibility:
    action: str
    feasible: bool
    limit: int | None = None
    reason: str | None = None


def read_market_state(system: VaultSystem, operator: str | None = None) -> MarketState:
    wallet = operator or system.operator
    vault = system.vault
    curve = system.curve
    return MarketState(
        vault_total_assets=vault.total_assets(),
        vault_available_liquidity=vault.available_liquidity(),
        vault_managed_assets=vault.managed_assets,
        vault_share_price=vault.share_price(),
        vault_total_shares=vault.total_shares,
        curve_price=curve.get_price(),
        curve_total_issued=curve.total_issued,
        curve_reserve_balance=curve.reserve_balance,
        operator_stable_balance=system.asset.balance_of(wallet),
        operator_token_balance=curve.balance_of(wallet),
    )


def assess_actions(state: MarketState) -> list[ActionFeasibility]:
    """Which operator actions can succeed against ``state``, with their upper bounds."""

    actions: list[ActionFeasibility] = []
    if state.vault_available_liquidity > 0:
        actions.append(ActionFeasibility("deploy_funds", True, state.vault_available_liquidity))
    else:
        actions.append(ActionFeasibility("deploy_funds", False, reason="vault liquidity is 0"))

    if state.operator_stable_balance > 0:
        actions.append(ActionFeasibility("buy", True, state.operator_stable_balance))
    else:
        actions.append(ActionFeasibility("buy", False, reason="no stablecoin in wallet"))

    if state.operator_token_balance > 0:
        actions.append(ActionFeasibility("sell", True, state.operator_token_balance))
    else:
        actions.append(ActionFeasibility("sell", False, reason="no curve tokens in wallet"))

    returnable = min(state.operator_stable_balance, state.vault_managed_assets)
    if returnable > 0:
        actions.append(ActionFeasibility("return_funds", True, returnable))
    elif state.vault_managed_assets == 0:
        actions.append(ActionFeasibility("return_funds", False, reason="no managed assets"))
    else:
        actions.append(ActionFeasibility("return_funds", False, reason="no stablecoin in wallet"))

    actions.append(ActionFeasibility("report_pnl", True))
    actions.append(ActionFeasibility("wait", True))
    return actions
