"""Settings module with unified configuration precedence: CLI > ENV > CONFIG FILE."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

try:
    import tomllib  # py311+
except ModuleNotFoundError:  # pragma: no cover
    import tomli as tomllib  # type: ignore

from dotenv import load_dotenv
from pydantic import Field, SecretStr, field_validator, model_validator
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)

from . import constants
from .address_book import AddressBook, load_address_book

load_dotenv()


class VaultSettings(BaseSettings):
    """Single source of truth for configuration. Values may come from:
    - CLI (init kwargs)
    - ENV / .env (prefixed with YDS_VAULT_)
    - Config file (TOML), lowest precedence

    Do not read os.environ or files elsewhere in the codebase.
    """

    # --- network ---
    rpc_url: str = constants.LOCAL_RPC_URL
    target_chain_id: int = constants.LOCAL_CHAIN_ID
    network: str = "localhost"
    address_book_path: Path | None = None

    # --- account / signing ---
    account_address: str | None = None
    private_key: SecretStr | None = None

    # --- polling and reconciliation ---
    poll_interval: float = Field(default=constants.POLL_INTERVAL, gt=0)
    reconcile_offsets: tuple[float, ...] = constants.RECONCILE_OFFSETS
    approve_settle_delay: float = Field(default=constants.APPROVE_SETTLE_DELAY, ge=0)
    deposit_clear_delay: float = Field(default=constants.DEPOSIT_CLEAR_DELAY, ge=0)
    network_switch_delay: float = Field(default=constants.NETWORK_SWITCH_DELAY, ge=0)
    terminal_grace_period: float = Field(
        default=constants.TERMINAL_GRACE_PERIOD,
        ge=0,
        description="Seconds a confirmed/failed operation stays visible before resetting to idle.",
    )

    # --- liveness probe ---
    probe_interval: float = Field(default=constants.PROBE_INTERVAL, gt=0)
    probe_failure_threshold: int = Field(
        default=constants.PROBE_FAILURE_THRESHOLD,
        ge=1,
        description="Consecutive failed probes before the node is reported unreachable.",
    )

    # --- RPC settings ---
    rpc_timeout: float = Field(default=constants.RPC_TIMEOUT, gt=0)
    rpc_max_tries: int = Field(default=2, ge=1)
    rpc_retry_interval: float = Field(default=0.25, ge=0)
    receipt_timeout: float = Field(default=constants.RECEIPT_TIMEOUT, gt=0)
    receipt_poll_latency: float = Field(default=constants.RECEIPT_POLL_LATENCY, gt=0)

    # --- logging ---
    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_prefix="YDS_VAULT_",
        env_file=".env",
        extra="ignore",  # ignore unknown keys in env/config file
    )

    @field_validator("private_key", mode="before")
    @classmethod
    def wrap_secrets(cls, v: Any) -> SecretStr | None:
        """Wrap string secrets in SecretStr."""
        if v is None or isinstance(v, SecretStr):
            return v
        return SecretStr(v)

    @field_validator("log_level", mode="before")
    @classmethod
    def normalise_log_level(cls, v: Any) -> str:
        return str(v).upper()

    @model_validator(mode="after")
    def validate_reconcile_offsets(self) -> "VaultSettings":
        """Reconciliation offsets must be positive and strictly ascending."""
        offsets = self.reconcile_offsets
        if not offsets:
            raise ValueError("reconcile_offsets must contain at least one delay")
        if any(offset <= 0 for offset in offsets):
            raise ValueError(f"reconcile_offsets must be positive, got {offsets}")
        if any(later <= earlier for earlier, later in zip(offsets, offsets[1:])):
            raise ValueError(f"reconcile_offsets must be ascending, got {offsets}")
        return self

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        """Custom config-file source with explicit precedence: CLI > ENV > FILE."""
        env_cfg = os.environ.get("YDS_VAULT_CONFIG")
        cfg_path = Path(env_cfg) if env_cfg else None

        class TomlConfigSource(PydanticBaseSettingsSource):
            def __init__(self, settings_cls: type[BaseSettings], path: Path | None):
                super().__init__(settings_cls)
                self._path = path

            def get_field_value(
                self, field: Any, field_name: str
            ) -> tuple[Any, str, bool]:
                return None, "", False

            def __call__(self) -> dict[str, Any]:
                if not self._path:
                    # Try default locations
                    local_config = Path("yds-vault.toml")
                    user_config = Path.home() / ".config" / "yds-vault" / "config.toml"
                    if local_config.exists():
                        self._path = local_config
                    elif user_config.exists():
                        self._path = user_config
                    else:
                        return {}

                if not self._path.exists():
                    return {}

                with self._path.open("rb") as f:
                    data = tomllib.load(f)  # supports top-level or [yds_vault]
                body = data.get("yds_vault", data)
                if not isinstance(body, dict):
                    return {}

                if "private_key" in body:
                    raise ValueError(
                        "Security violation: 'private_key' found in TOML config file. "
                        "Secrets must only be provided via environment variables or CLI flags."
                    )

                return body

        return (
            init_settings,  # CLI (highest)
            env_settings,  # ENV
            dotenv_settings,  # .env
            TomlConfigSource(settings_cls, cfg_path),  # CONFIG (lowest)
            file_secret_settings,  # optional secrets dir
        )

    def as_safe_dict(self) -> dict[str, Any]:
        """Return the config as a dict with secrets redacted."""
        data = self.model_dump(mode="json")
        if self.private_key:
            data["private_key"] = "***redacted***"
        return data

    @property
    def address_book(self) -> AddressBook:
        """Contract addresses for the configured network."""
        return load_address_book(self.address_book_path, self.network)
