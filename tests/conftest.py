"""Shared test fixtures for cloudbridge tests."""

import tempfile
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable

import httpx
import pytest

from cloudbridge.models.account import CloudAccount, Credential, ProviderOptions

FIXED_NOW = datetime(2024, 3, 15, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def temp_dir():
    """Create a temporary directory for test files."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def fixed_clock() -> Callable[[], datetime]:
    """Clock frozen at 2024-03-15 12:00 UTC."""
    return lambda: FIXED_NOW


@pytest.fixture
def make_account():
    """Factory for CloudAccount objects with dummy keys."""

    def _make(
        account_id: str = "acct-1",
        provider: str = "aws",
        name: str = "",
        enabled: bool = True,
        region: str = None,
        access_key_id: str = "AKIDEXAMPLE",
        secret: str = "secret",
        **options,
    ) -> CloudAccount:
        return CloudAccount(
            account_id=account_id,
            name=name or f"{provider} {account_id}",
            provider=provider,
            credential=Credential(account_id=account_id, access_key_id=access_key_id, secret=secret, region=region),
            enabled=enabled,
            region=region,
            options=ProviderOptions(**options),
        )

    return _make


@pytest.fixture
def mock_client():
    """Factory wrapping a request handler in an httpx client.

    The handler receives each httpx.Request; requests are also appended to
    ``client.sent`` for assertions.
    """

    def _make(handler: Callable[[httpx.Request], httpx.Response]) -> httpx.Client:
        sent = []

        def _record(request: httpx.Request) -> httpx.Response:
            sent.append(request)
            return handler(request)

        client = httpx.Client(transport=httpx.MockTransport(_record))
        client.sent = sent
        return client

    return _make
