"""Pydantic BaseSettings: secrets come from the environment, .env and a PEM file."""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import SecretStr, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from vaultsign.errors import StartupConfigurationError
from vaultsign.types import ProviderConfig


class Settings(BaseSettings):
    """Central configuration loaded from env / .env file."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # ── Application ─────────────────────────────────────────────
    APP_ENV: Literal["dev", "prod"] = "dev"
    LOG_LEVEL: str = "INFO"

    # ── Credentials (never commit real values) ──────────────────
    VAULT_API_USER_TOKEN: SecretStr = SecretStr("")
    VAULT_PRIVATE_KEY_PATH: Path = Path("./vault_secret/private.pem")

    # ── Provider ────────────────────────────────────────────────
    VAULT_CHAIN_ID: int = 8453  # Base
    VAULT_SIGNER_ADDRESS: str = "0x8BFCF9e2764BC84DE4BBd0a0f5AAF19F47027A73"
    VAULT_RPC_URL: str = "https://base.llamarpc.com"
    VAULT_API_BASE_URL: str = "https://api.fordefi.com"
    VAULT_SKIP_PREDICTION: bool = False
    VAULT_CONNECT_TIMEOUT: float | None = None


def readPrivateKey(path: Path) -> str:
    try:
        pem = path.read_text(encoding="utf-8")
    except OSError as error:
        raise StartupConfigurationError(
            f"Payload signing key could not be read from {path}: {error.strerror}"
        ) from error

    if not pem.strip():
        raise StartupConfigurationError(f"Payload signing key file {path} is empty")

    return pem


def loadProviderConfig(settings: Settings | None = None) -> ProviderConfig:
    """Build the static provider configuration, failing fast on missing secrets."""
    if settings is None:
        settings = Settings()

    token = settings.VAULT_API_USER_TOKEN.get_secret_value()
    if not token:
        raise StartupConfigurationError("VAULT_API_USER_TOKEN is not set")

    pem = readPrivateKey(settings.VAULT_PRIVATE_KEY_PATH)

    try:
        return ProviderConfig(
            chainId=settings.VAULT_CHAIN_ID,
            address=settings.VAULT_SIGNER_ADDRESS,
            apiUserToken=token,
            apiPayloadSignKey=pem,
            rpcUrl=settings.VAULT_RPC_URL,
            apiBaseUrl=settings.VAULT_API_BASE_URL,
            skipPrediction=settings.VAULT_SKIP_PREDICTION,
            connectTimeout=settings.VAULT_CONNECT_TIMEOUT,
        )
    except ValidationError as error:
        raise StartupConfigurationError(f"Invalid provider settings: {error}") from error
