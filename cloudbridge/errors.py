"""Error taxonomy shared by signers, providers, cache and orchestrator."""

from typing import Optional


class CloudBridgeError(Exception):
    """Base class for all CloudBridge errors."""

    kind = "error"


class TransportError(CloudBridgeError):
    """Network failure, timeout, throttling or provider-side 5xx."""

    kind = "transport"


class AuthError(CloudBridgeError):
    """The provider rejected the credential or the request signature."""

    kind = "auth"

    def __init__(self, message: str, code: Optional[str] = None):
        super().__init__(message)
        self.code = code

    def __str__(self) -> str:
        base = super().__str__()
        return f"Credentials rejected: {base}"


class ParseError(CloudBridgeError):
    """Response body was malformed or had an unexpected shape."""

    kind = "parse"


class ApiError(CloudBridgeError):
    """Provider rejected the request for a reason other than authentication."""

    kind = "api"

    def __init__(self, message: str, code: Optional[str] = None, status: Optional[int] = None):
        super().__init__(message)
        self.code = code
        self.status = status


class UnsupportedProviderError(CloudBridgeError):
    """No adapter is registered for the requested provider."""

    kind = "unsupported"


class ConfigError(CloudBridgeError):
    """Invalid local state: bad date range, missing credential, bad config file."""

    kind = "config"
