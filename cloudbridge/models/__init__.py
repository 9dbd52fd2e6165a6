"""Data models for CloudBridge."""

from .account import CloudAccount, Credential, NegativeAmountPolicy, ProviderOptions, ProviderType
from .cost import CostRecord, CostSummary, CostTrend, DailyCost, ServiceCost

__all__ = [
    "CloudAccount",
    "Credential",
    "NegativeAmountPolicy",
    "ProviderOptions",
    "ProviderType",
    "CostRecord",
    "CostSummary",
    "CostTrend",
    "DailyCost",
    "ServiceCost",
]
