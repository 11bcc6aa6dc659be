"""Application configuration using pydantic-settings.

Holds the Ledger session limits and the target network used when exporting
extended public keys and validating device-reported addresses.
"""

from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from hwsigner.networks import Network, get_network


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ======================
    # Logging
    # ======================
    debug: bool = Field(default=False, description="Enable debug logging")
    log_level: str = Field(default="INFO", description="Log level when debug is off")

    # ======================
    # Network
    # ======================
    network: str = Field(
        default="mainnet", description="Target network (mainnet, testnet, regtest)"
    )

    # ======================
    # Ledger session
    # ======================
    max_apdu_size: int = Field(
        default=90, description="Maximum size in bytes of one outbound APDU frame"
    )
    response_buffer_size: int = Field(
        default=300, description="Read buffer size in bytes for one inbound frame"
    )

    @field_validator("network")
    @classmethod
    def _check_network(cls, value: str) -> str:
        # Raises ValueError for unknown names
        get_network(value)
        return value.lower()

    @field_validator("max_apdu_size", "response_buffer_size")
    @classmethod
    def _check_positive(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("must be a positive number of bytes")
        return value

    def get_network(self) -> Network:
        """Get the configured network parameters."""
        return get_network(self.network)

    def get_safe_dict(self) -> dict:
        """Return settings as a dict suitable for logging."""
        return {
            "debug": self.debug,
            "log_level": self.log_level,
            "network": self.network,
            "ledger": {
                "max_apdu_size": self.max_apdu_size,
                "response_buffer_size": self.response_buffer_size,
            },
        }


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
