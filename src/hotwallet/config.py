"""
Configuration management using pydantic-settings.
"""

from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from hotwallet.constants import DEFAULT_FEE_RATE, STANDARD_DUST_LIMIT
from hotwallet.models import AddressType, NetworkType, SelectionStrategy


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="HOTWALLET_", env_file=".env", env_file_encoding="utf-8", case_sensitive=False
    )

    network: NetworkType = NetworkType.MAINNET
    address_type: AddressType = AddressType.SEGWIT
    selection_strategy: SelectionStrategy = SelectionStrategy.BEST_FIT

    default_fee_rate: int = Field(default=DEFAULT_FEE_RATE, ge=1)  # sat/vB
    fee_target_blocks: int = Field(default=6, ge=1)
    dust_threshold: int = Field(default=STANDARD_DUST_LIMIT, ge=0)
    min_confirmations: int = Field(default=0, ge=0)

    log_level: str = "INFO"


def get_settings() -> Settings:
    return Settings()
