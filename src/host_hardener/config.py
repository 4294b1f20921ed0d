"""Configuration management for Host Hardener."""

import os
from pathlib import Path
from typing import Annotated, List, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


def _split_names(v: object) -> List[str]:
    if isinstance(v, str):
        return [u.strip() for u in v.split(",") if u.strip()]
    if isinstance(v, (list, tuple)):
        return [str(u).strip() for u in v if str(u).strip()]
    return []


class RunConfig(BaseSettings):
    """Run-level settings: report location, step budget, skipped plugins."""

    report_path: Path = Field(default=Path("fh.txt"))
    timeout_seconds: int = Field(default=1800, ge=1, description="Per-step timeout")
    skip: Annotated[List[str], NoDecode] = Field(default_factory=list)

    model_config = SettingsConfigDict(
        env_prefix="HARDENER_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    @field_validator("skip", mode="before")
    @classmethod
    def parse_skip(cls, v: object) -> List[str]:
        """Parse plugin names from comma-separated string or list."""
        return _split_names(v)


class FirewallConfig(BaseSettings):
    """Firewall baseline settings."""

    management_port: int = Field(default=22, ge=1, le=65535)

    model_config = SettingsConfigDict(
        env_prefix="FIREWALL_",
        env_file=".env",
        env_file_encoding="utf-8",
    )


class AccountConfig(BaseSettings):
    """Account lockdown settings."""

    protected: Annotated[List[str], NoDecode] = Field(
        default_factory=list, description="Accounts never locked, besides root and the invoker"
    )
    credential_bytes: int = Field(default=16, ge=12, le=64)
    nologin_shell: Optional[Path] = Field(default=None)

    model_config = SettingsConfigDict(
        env_prefix="ACCOUNTS_",
        env_file=".env",
        env_file_encoding="utf-8",
    )

    @field_validator("protected", mode="before")
    @classmethod
    def parse_protected(cls, v: object) -> List[str]:
        """Parse account names from comma-separated string or list."""
        return _split_names(v)


class ScanConfig(BaseSettings):
    """Malware scan settings."""

    root: Path = Field(default=Path("/"))
    remove_infected: bool = Field(default=True)
    install_missing: bool = Field(default=True)

    model_config = SettingsConfigDict(
        env_prefix="SCAN_",
        env_file=".env",
        env_file_encoding="utf-8",
    )


class LoggingConfig(BaseSettings):
    """Logging configuration."""

    level: str = Field(default="INFO")
    file: Optional[Path] = Field(default=None)

    model_config = SettingsConfigDict(
        env_prefix="LOG_",
        env_file=".env",
        env_file_encoding="utf-8",
    )

    @field_validator("level")
    @classmethod
    def normalize_level(cls, v: str) -> str:
        level = v.strip().upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown log level: {v}")
        return level


class HardenerConfig(BaseSettings):
    """Main configuration container."""

    run: RunConfig = Field(default_factory=RunConfig)
    firewall: FirewallConfig = Field(default_factory=FirewallConfig)
    accounts: AccountConfig = Field(default_factory=AccountConfig)
    scan: ScanConfig = Field(default_factory=ScanConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
    )

    @classmethod
    def from_env(cls) -> "HardenerConfig":
        """Create configuration from environment variables."""
        return cls(
            run=RunConfig(),
            firewall=FirewallConfig(),
            accounts=AccountConfig(),
            scan=ScanConfig(),
            logging=LoggingConfig(),
        )

    def validate_config(self) -> List[str]:
        """Validate configuration and return list of issues."""
        issues: List[str] = []

        if not self.scan.root.is_absolute():
            issues.append(f"Scan root must be an absolute path: {self.scan.root}")

        if self.accounts.nologin_shell is not None and not self.accounts.nologin_shell.exists():
            issues.append(f"Non-login shell not found: {self.accounts.nologin_shell}")

        if self.logging.file is not None and not os.access(
            self.logging.file.parent, os.W_OK
        ):
            issues.append(f"Log directory is not writable: {self.logging.file.parent}")

        return issues
