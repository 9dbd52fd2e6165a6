"""Billing provider adapters."""

from .aliyun import AliyunBillingProvider
from .aws import AwsBillingProvider
from .base import BillingProvider
from .deepseek import DeepSeekBillingProvider
from .registry import PROVIDER_REGISTRY, create_provider, get_provider_class

__all__ = [
    "AliyunBillingProvider",
    "AwsBillingProvider",
    "BillingProvider",
    "DeepSeekBillingProvider",
    "PROVIDER_REGISTRY",
    "create_provider",
    "get_provider_class",
]
