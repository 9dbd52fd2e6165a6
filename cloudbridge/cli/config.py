"""YAML configuration for the CloudBridge CLI."""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml

from ..errors import ConfigError, UnsupportedProviderError
from ..models.account import CloudAccount, ProviderOptions, ProviderType
from .credentials import resolve_credential

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "CLOUDBRIDGE_CONFIG"
DEFAULT_CONFIG_PATH = Path("~/.cloudbridge/config.yaml")


@dataclass
class Config:
    """CLI settings plus the raw account entries."""

    log_level: str = "INFO"
    log_file: Optional[str] = None
    cache_dir: str = "~/.cloudbridge/cache"
    cache_ttl_hours: float = 6
    fetch_timeout: float = 30
    batch_timeout: float = 60
    max_workers: int = 8
    accounts: List[Dict[str, Any]] = field(default_factory=list)
    path: Optional[Path] = None

    @classmethod
    def default_path(cls) -> Path:
        return Path(os.environ.get(CONFIG_ENV_VAR) or DEFAULT_CONFIG_PATH).expanduser()

    @classmethod
    def load(cls, path: Optional[Union[str, Path]] = None) -> 'Config':
        """Load configuration, falling back to defaults when the file is missing.

        Args:
            path: Config file; defaults to $CLOUDBRIDGE_CONFIG or ~/.cloudbridge/config.yaml

        Returns:
            Config instance

        Raises:
            ConfigError: If the file is not valid YAML or has bad values
        """
        config_path = Path(path).expanduser() if path else cls.default_path()

        if not config_path.exists():
            logger.debug(f"No config file at {config_path}, using defaults")
            return cls(path=config_path)

        try:
            with open(config_path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in {config_path}: {e}") from e

        if not isinstance(data, dict):
            raise ConfigError(f"{config_path} must contain a mapping at the top level")

        config = cls.from_dict(data)
        config.path = config_path
        logger.debug(f"Loaded config from {config_path} ({len(config.accounts)} account(s))")
        return config

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Config':
        accounts = data.get("accounts") or []
        if not isinstance(accounts, list):
            raise ConfigError("'accounts' must be a list")

        try:
            return cls(
                log_level=str(data.get("log_level", "INFO")),
                log_file=data.get("log_file"),
                cache_dir=str(data.get("cache_dir", "~/.cloudbridge/cache")),
                cache_ttl_hours=float(data.get("cache_ttl_hours", 6)),
                fetch_timeout=float(data.get("fetch_timeout", 30)),
                batch_timeout=float(data.get("batch_timeout", 60)),
                max_workers=int(data.get("max_workers", 8)),
                accounts=accounts,
            )
        except (TypeError, ValueError) as e:
            raise ConfigError(f"Invalid config value: {e}") from e

    def build_accounts(self) -> List[CloudAccount]:
        """Turn account entries into CloudAccount objects.

        Raises:
            ConfigError: On a missing id, unknown provider, duplicate id or
                unresolvable credential
        """
        accounts = []
        seen = set()
        for index, entry in enumerate(self.accounts):
            account = parse_account(entry, index)
            if account.account_id in seen:
                raise ConfigError(f"Duplicate account id: {account.account_id}")
            seen.add(account.account_id)
            accounts.append(account)
        return accounts


def parse_account(entry: Any, index: int = 0) -> CloudAccount:
    """Build a CloudAccount from one config entry."""
    if not isinstance(entry, dict):
        raise ConfigError(f"Account entry #{index + 1} must be a mapping")

    account_id = str(entry.get("id") or "").strip()
    if not account_id:
        raise ConfigError(f"Account entry #{index + 1} has no 'id'")

    try:
        provider_type = ProviderType.parse(entry.get("provider", ""))
    except UnsupportedProviderError as e:
        raise ConfigError(f"Account {account_id}: {e}") from e

    try:
        options = ProviderOptions.from_dict(entry)
    except (TypeError, ValueError) as e:
        raise ConfigError(f"Account {account_id}: invalid option ({e})") from e

    region = entry.get("region")
    return CloudAccount(
        account_id=account_id,
        name=str(entry.get("name") or account_id),
        provider=provider_type.value,
        credential=resolve_credential(entry, account_id, provider_type),
        enabled=bool(entry.get("enabled", True)),
        region=region,
        options=options,
    )
