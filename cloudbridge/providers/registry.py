"""Provider type to adapter class mapping."""

import logging
from typing import Dict, Type

from ..errors import UnsupportedProviderError
from ..models.account import CloudAccount, ProviderType
from .aliyun import AliyunBillingProvider
from .aws import AwsBillingProvider
from .base import BillingProvider
from .deepseek import DeepSeekBillingProvider

logger = logging.getLogger(__name__)

# Azure and GCP are recognized tags without an adapter
PROVIDER_REGISTRY: Dict[ProviderType, Type[BillingProvider]] = {
    ProviderType.AWS: AwsBillingProvider,
    ProviderType.ALIYUN: AliyunBillingProvider,
    ProviderType.DEEPSEEK: DeepSeekBillingProvider,
}


def get_provider_class(provider_type: ProviderType) -> Type[BillingProvider]:
    try:
        return PROVIDER_REGISTRY[provider_type]
    except KeyError:
        raise UnsupportedProviderError(f"{provider_type.display_name} is not supported yet") from None


def create_provider(account: CloudAccount, **kwargs) -> BillingProvider:
    """Build the adapter for an account.

    Args:
        account: Account to build the adapter for
        **kwargs: Passed to the adapter (client, clock, timeout)

    Returns:
        Configured BillingProvider

    Raises:
        UnsupportedProviderError: If the provider is unknown or has no adapter
    """
    provider_class = get_provider_class(account.provider_type)
    logger.debug(f"Creating {provider_class.__name__} for {account.account_id}")
    return provider_class(account, **kwargs)
