"""Resolve account key material from config, environment or an AWS profile."""

import logging
import os
from typing import Any, Dict, Optional

import boto3
from botocore.exceptions import BotoCoreError, ProfileNotFound

from ..errors import ConfigError
from ..models.account import Credential, ProviderType

logger = logging.getLogger(__name__)


def _from_env(var_name: Optional[str], account_id: str) -> Optional[str]:
    if not var_name:
        return None
    value = os.environ.get(var_name)
    if value is None:
        raise ConfigError(f"Account {account_id}: environment variable {var_name} is not set")
    return value


def credential_from_profile(profile_name: str, account_id: str, region: Optional[str] = None) -> Credential:
    """Read static keys for an AWS named profile through boto3.

    Raises:
        ConfigError: If the profile is missing, has no credentials or only
            temporary ones
    """
    try:
        session = boto3.Session(profile_name=profile_name)
        credentials = session.get_credentials()
    except ProfileNotFound as e:
        raise ConfigError(f"Account {account_id}: {e}") from e
    except BotoCoreError as e:
        raise ConfigError(f"Account {account_id}: could not load profile '{profile_name}': {e}") from e

    if credentials is None:
        raise ConfigError(f"Account {account_id}: profile '{profile_name}' has no credentials")

    frozen = credentials.get_frozen_credentials()
    if frozen.token:
        raise ConfigError(
            f"Account {account_id}: profile '{profile_name}' yields temporary credentials, "
            "which are not supported; configure an access key pair"
        )

    logger.debug(f"Loaded credentials for {account_id} from AWS profile '{profile_name}'")
    return Credential(
        account_id=account_id,
        access_key_id=frozen.access_key,
        secret=frozen.secret_key,
        region=region or session.region_name,
    )


def resolve_credential(entry: Dict[str, Any], account_id: str, provider_type: ProviderType) -> Credential:
    """Build the Credential for one account entry.

    Lookup order: ``profile`` (AWS only), inline ``access_key_id``/``secret``,
    then ``access_key_id_env``/``secret_env``. DeepSeek needs no secret.

    Raises:
        ConfigError: If no usable key material is configured
    """
    region = entry.get("region")

    profile = entry.get("profile")
    if profile:
        if provider_type != ProviderType.AWS:
            raise ConfigError(f"Account {account_id}: 'profile' is only supported for AWS accounts")
        return credential_from_profile(str(profile), account_id, region)

    access_key_id = entry.get("access_key_id") or _from_env(entry.get("access_key_id_env"), account_id)
    secret = entry.get("secret") or _from_env(entry.get("secret_env"), account_id)

    if not access_key_id:
        raise ConfigError(f"Account {account_id}: no access key configured")
    if not secret and provider_type != ProviderType.DEEPSEEK:
        raise ConfigError(f"Account {account_id}: no secret configured")

    return Credential(
        account_id=account_id,
        access_key_id=str(access_key_id),
        secret=str(secret or ""),
        region=region,
    )
