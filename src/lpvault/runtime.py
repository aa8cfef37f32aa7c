from __future__ import annotations

import logging
from dataclasses import dataclass

from lpvault.config import Settings
from lpvault.engine.bonding_curve import BondingCurveMarket
from lpvault.engine.vault import ShareVault
from lpvault.ledger.token import FungibleToken
from lpvault.persistence.uow import UnitOfWork

logger = logging.getLogger(__name__)


class StateIntegrityError(RuntimeError):
    """Persisted engine counters disagree with the persisted token ledgers."""


@dataclass
class VaultSystem:
    asset: FungibleToken
    vault: ShareVault
    curve: BondingCurveMarket
    operator: str
    faucet: str

    def ledgers(self) -> tuple[FungibleToken, ...]:
        return (self.asset, self.vault.shares, self.curve.token)


def build_system(settings: Settings) -> VaultSystem:
    asset = FungibleToken(settings.funding_symbol, minter=settings.faucet_address)
    vault = ShareVault(
        asset,
        operator=settings.operator_address,
        address=settings.vault_address,
        share_symbol=settings.share_symbol,
        virtual_offset=settings.virtual_offset,
    )
    curve = BondingCurveMarket(
        asset,
        address=settings.curve_address,
        token_symbol=settings.curve_token_symbol,
        base_price=settings.curve_base_price,
        slope=settings.curve_slope,
    )
    return VaultSystem(
        asset=asset,
        vault=vault,
        curve=curve,
        operator=vault.operator,
        faucet=settings.faucet_address,
    )


def load_system(uow: UnitOfWork, settings: Settings) -> VaultSystem:
    system = build_system(settings)
    for ledger in system.ledgers():
        state = uow.tokens.load(ledger.symbol)
        if state is not None:
            ledger.restore(state)

    vault_state = uow.engines.get_vault_state()
    if vault_state is not None:
        system.vault.restore(vault_state)
    curve_state = uow.engines.get_curve_state()
    if curve_state is not None:
        system.curve.restore(curve_state)

    if system.curve.total_issued != system.curve.token.total_supply:
        raise StateIntegrityError(
            f"curve total_issued={system.curve.total_issued} "
            f"but {system.curve.token.symbol} supply={system.curve.token.total_supply}"
        )
    logger.debug(
        "system_loaded",
        extra={
            "extra": {
                "total_assets": system.vault.total_assets(),
                "total_shares": system.vault.total_shares,
                "total_issued": system.curve.total_issued,
            }
        },
    )
    return system


def save_system(uow: UnitOfWork, system: VaultSystem) -> None:
    for ledger in system.ledgers():
        uow.tokens.save(ledger.snapshot())
    uow.engines.save_vault_state(system.vault.snapshot())
    uow.engines.save_curve_state(system.curve.snapshot())
