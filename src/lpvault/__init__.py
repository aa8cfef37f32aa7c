"""Value-accounting and pricing core for a liquidity-provisioning vault."""

__version__ = "0.1.0"
