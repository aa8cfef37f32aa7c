from lpvault.ledger.token import MAX_ALLOWANCE, FungibleToken

__all__ = ["MAX_ALLOWANCE", "FungibleToken"]
