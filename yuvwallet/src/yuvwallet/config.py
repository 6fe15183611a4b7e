"""
Configuration management for the YUV wallet.
"""

from typing import Literal

from pydantic import SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_ESPLORA_URLS = {
    "mainnet": "https://blockstream.info/api",
    "testnet": "https://mutinynet.com/api",
    "regtest": "http://127.0.0.1:3002",
}

DEFAULT_NODE_URLS = {
    "mainnet": "http://54.219.77.43:18333",
    "testnet": "http://54.215.221.246:18333",
    "regtest": "http://127.0.0.1:18333",
}


class WalletSettings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="YUV_", env_file=".env", env_file_encoding="utf-8", case_sensitive=False
    )

    network: Literal["mainnet", "testnet", "regtest"] = "testnet"

    private_key: SecretStr | None = None

    esplora_url: str | None = None
    node_url: str | None = None
    node_user: str | None = None
    node_password: SecretStr | None = None

    fee_rate: float = 1.0
    request_timeout: float = 30.0

    log_level: str = "INFO"

    def get_esplora_url(self) -> str:
        return self.esplora_url or DEFAULT_ESPLORA_URLS[self.network]

    def get_node_url(self) -> str:
        return self.node_url or DEFAULT_NODE_URLS[self.network]


def get_settings() -> WalletSettings:
    return WalletSettings()
