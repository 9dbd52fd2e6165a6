"""Account and credential models."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional

from ..errors import UnsupportedProviderError


class ProviderType(str, Enum):
    """Cloud provider tags recognized in account configuration."""

    AWS = "aws"
    ALIYUN = "aliyun"
    DEEPSEEK = "deepseek"
    AZURE = "azure"
    GCP = "gcp"

    @property
    def display_name(self) -> str:
        return _DISPLAY_NAMES[self]

    @property
    def short_name(self) -> str:
        return _SHORT_NAMES[self]

    @classmethod
    def parse(cls, value: str) -> 'ProviderType':
        """Parse a provider tag case-insensitively.

        Raises:
            UnsupportedProviderError: If the tag names no known provider
        """
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise UnsupportedProviderError(f"Unknown provider type: {value!r}") from None


_DISPLAY_NAMES = {
    ProviderType.AWS: "Amazon Web Services",
    ProviderType.ALIYUN: "Alibaba Cloud",
    ProviderType.DEEPSEEK: "DeepSeek",
    ProviderType.AZURE: "Microsoft Azure",
    ProviderType.GCP: "Google Cloud Platform",
}

_SHORT_NAMES = {
    ProviderType.AWS: "AWS",
    ProviderType.ALIYUN: "Aliyun",
    ProviderType.DEEPSEEK: "DeepSeek",
    ProviderType.AZURE: "Azure",
    ProviderType.GCP: "GCP",
}


class NegativeAmountPolicy(str, Enum):
    """How an adapter treats negative amounts reported by a provider.

    keep: pass through unmodified (credits are flagged by CostRecord.is_credit)
    clamp: raise to zero
    drop: discard the record
    """

    KEEP = "keep"
    CLAMP = "clamp"
    DROP = "drop"


@dataclass(frozen=True)
class Credential:
    """Already-decrypted key material for one account."""

    account_id: str
    access_key_id: str
    secret: str = field(repr=False)
    region: Optional[str] = None


@dataclass
class ProviderOptions:
    """Per-account overrides of provider defaults."""

    currency: Optional[str] = None
    negative_amounts: Optional[NegativeAmountPolicy] = None
    trend_days: Optional[int] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ProviderOptions':
        policy = data.get('negative_amounts')
        trend_days = data.get('trend_days')
        return cls(
            currency=data.get('currency'),
            negative_amounts=NegativeAmountPolicy(policy) if policy else None,
            trend_days=int(trend_days) if trend_days is not None else None,
        )


@dataclass
class CloudAccount:
    """A configured billing account."""

    account_id: str
    name: str
    provider: str
    credential: Credential
    enabled: bool = True
    region: Optional[str] = None
    options: ProviderOptions = field(default_factory=ProviderOptions)

    @property
    def provider_type(self) -> ProviderType:
        return ProviderType.parse(self.provider)

    def to_dict(self) -> Dict[str, Any]:
        """Describe the account without key material."""
        return {
            'id': self.account_id,
            'name': self.name,
            'provider': self.provider,
            'enabled': self.enabled,
            'region': self.region,
            'access_key_id': _mask(self.credential.access_key_id),
        }


def _mask(value: str) -> str:
    if len(value) <= 4:
        return "*" * len(value)
    return "*" * (len(value) - 4) + value[-4:]
