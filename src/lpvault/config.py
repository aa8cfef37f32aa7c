from __future__ import annotations

from decimal import Decimal

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from lpvault.domain.models import is_unset_address


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    state_db_path: str = Field(default="lpvault_state.db", alias="STATE_DB_PATH")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    operator_address: str = Field(default="operator", alias="OPERATOR_ADDRESS")
    faucet_address: str = Field(default="faucet", alias="FAUCET_ADDRESS")
    vault_address: str = Field(default="vault", alias="VAULT_ADDRESS")
    curve_address: str = Field(default="curve", alias="CURVE_ADDRESS")

    funding_symbol: str = Field(default="USDC", alias="FUNDING_SYMBOL")
    share_symbol: str = Field(default="easyL", alias="SHARE_SYMBOL")
    curve_token_symbol: str = Field(default="RSIM", alias="CURVE_TOKEN_SYMBOL")

    virtual_offset: int = Field(default=1000, alias="VIRTUAL_OFFSET")
    curve_base_price: int = Field(default=10_000, alias="CURVE_BASE_PRICE")
    curve_slope: int = Field(default=10_000, alias="CURVE_SLOPE")

    max_deploy_usdc: Decimal = Field(default=Decimal("100"), alias="MAX_DEPLOY_USDC")
    max_trade_usdc: Decimal = Field(default=Decimal("50"), alias="MAX_TRADE_USDC")

    @field_validator("virtual_offset")
    def validate_virtual_offset(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("VIRTUAL_OFFSET must be > 0")
        return value

    @field_validator("curve_base_price")
    def validate_curve_base_price(cls, value: int) -> int:
        if value < 0:
            raise ValueError("CURVE_BASE_PRICE must be >= 0")
        return value

    @field_validator("curve_slope")
    def validate_curve_slope(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("CURVE_SLOPE must be > 0")
        return value

    @field_validator("max_deploy_usdc", "max_trade_usdc")
    def validate_action_caps(cls, value: Decimal) -> Decimal:
        if value <= 0:
            raise ValueError("action caps must be > 0")
        return value

    @field_validator("operator_address", "faucet_address", "vault_address", "curve_address")
    def validate_addresses(cls, value: str) -> str:
        if is_unset_address(value):
            raise ValueError("ledger addresses must be set and non-zero")
        return value.strip()

    @field_validator("funding_symbol", "share_symbol", "curve_token_symbol")
    def validate_symbols(cls, value: str) -> str:
        cleaned = value.strip()
        if not cleaned:
            raise ValueError("token symbols must be non-empty")
        return cleaned

    @model_validator(mode="after")
    def validate_distinct_identities(self) -> Settings:
        symbols = {self.funding_symbol, self.share_symbol, self.curve_token_symbol}
        if len(symbols) != 3:
            raise ValueError("FUNDING_SYMBOL, SHARE_SYMBOL and CURVE_TOKEN_SYMBOL must differ")
        addresses = {
            self.operator_address.lower(),
            self.vault_address.lower(),
            self.curve_address.lower(),
        }
        if len(addresses) != 3:
            raise ValueError("OPERATOR_ADDRESS, VAULT_ADDRESS and CURVE_ADDRESS must differ")
        return self
