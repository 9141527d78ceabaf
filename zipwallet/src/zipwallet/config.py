"""
Configuration management using pydantic-settings.
"""

from __future__ import annotations

import os
from decimal import Decimal
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from zipwallet.constants import DEFAULT_DUST_THRESHOLD, DEFAULT_FEE_RATE_SAT_PER_KB

# Premium prefixes and their prices. Everything else is priced by length tier.
DEFAULT_PREMIUM_PREFIXES: dict[str, Decimal] = {
    # 3-character
    "ace": Decimal(1000),
    "bob": Decimal(1000),
    "cat": Decimal(800),
    "dog": Decimal(900),
    "fox": Decimal(900),
    "fun": Decimal(1800),
    "hot": Decimal(3000),
    "joe": Decimal(800),
    "max": Decimal(1200),
    "neo": Decimal(1500),
    "pro": Decimal(1500),
    "red": Decimal(600),
    "roy": Decimal(700),
    "sam": Decimal(900),
    "sex": Decimal(6000),
    "sky": Decimal(700),
    "sun": Decimal(500),
    "top": Decimal(2000),
    "vip": Decimal(5000),
    "zen": Decimal(1200),
    # 4-character
    "anna": Decimal(350),
    "bank": Decimal(3500),
    "best": Decimal(2200),
    "blog": Decimal(700),
    "blue": Decimal(700),
    "boss": Decimal(1800),
    "cash": Decimal(4000),
    "cool": Decimal(2500),
    "deal": Decimal(500),
    "easy": Decimal(1400),
    "fast": Decimal(1600),
    "free": Decimal(2800),
    "game": Decimal(900),
    "gold": Decimal(4000),
    "guru": Decimal(1200),
    "hero": Decimal(1500),
    "jane": Decimal(450),
    "john": Decimal(300),
    "king": Decimal(2000),
    "love": Decimal(3000),
    "mark": Decimal(600),
    "mary": Decimal(400),
    "moon": Decimal(600),
    "news": Decimal(800),
    "paul": Decimal(500),
    "rich": Decimal(2500),
    "shop": Decimal(600),
    "star": Decimal(800),
    "tech": Decimal(1000),
}


def _default_paymail_domain() -> str:
    return os.environ.get("PAYMAIL_DOMAIN", "zip.io")


class AliasConfig(BaseModel):
    """PayMail alias issuing and pricing rules."""

    domain: str = Field(
        default_factory=_default_paymail_domain, min_length=1, validate_default=True
    )
    sequence_start: int = Field(default=101, ge=0, description="First sequential free prefix")
    min_prefix_length: int = Field(default=3, ge=1)
    three_char_price: Decimal = Field(default=Decimal(250), ge=0)
    four_char_price: Decimal = Field(default=Decimal(25), ge=0)
    base_price: Decimal = Field(default=Decimal(10), ge=0, description="Price for 5+ characters")
    premium_prefixes: dict[str, Decimal] = Field(
        default_factory=lambda: dict(DEFAULT_PREMIUM_PREFIXES)
    )

    @field_validator("domain")
    @classmethod
    def validate_domain(cls, v: str) -> str:
        if "@" in v or "." not in v:
            raise ValueError(f"Invalid PayMail domain: {v}")
        return v.lower()

    @property
    def initial_prefix(self) -> str:
        return str(self.sequence_start)


class WalletSettings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="ZIPWALLET_",
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
    )

    network: Literal["mainnet", "testnet", "regtest"] = "mainnet"
    data_dir: Path = Field(default_factory=lambda: Path.home() / ".zipwallet")

    # Collaborators. An empty URL disables the collaborator.
    chain_index_url: str = "https://api.whatsonchain.com/v1/bsv"
    price_feed_url: str = "https://api.coingecko.com/api/v3"
    http_timeout: float = Field(default=30.0, gt=0)

    price_cache_ttl: float = Field(default=300.0, gt=0, description="Fiat price TTL in seconds")
    fee_rate_sat_per_kb: int = Field(default=DEFAULT_FEE_RATE_SAT_PER_KB, ge=0)
    dust_threshold: int = Field(default=DEFAULT_DUST_THRESHOLD, ge=1)

    # Sender identity announced to PayMail hosts
    sender_handle: str = ""

    log_level: str = "INFO"

    alias: AliasConfig = Field(default_factory=AliasConfig)

    @model_validator(mode="after")
    def default_sender_handle(self) -> WalletSettings:
        """Fall back to the first sequential alias as sender handle."""
        if not self.sender_handle:
            self.sender_handle = f"{self.alias.initial_prefix}@{self.alias.domain}"
        return self


def get_settings() -> WalletSettings:
    return WalletSettings()
