"""Percent-encoding shared by the request signers."""

from collections.abc import Mapping
from typing import Iterable, Tuple, Union

UNRESERVED = frozenset(b"ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789-_.~")

QueryParams = Union[Mapping[str, str], Iterable[Tuple[str, str]]]


def percent_encode(value: str) -> str:
    """Encode every byte outside A-Za-z0-9-_.~ as %XX.

    Multi-byte UTF-8 characters become one %XX triplet per byte.
    """
    out = []
    for byte in str(value).encode("utf-8"):
        if byte in UNRESERVED:
            out.append(chr(byte))
        else:
            out.append(f"%{byte:02X}")
    return "".join(out)


def canonical_query(params: QueryParams) -> str:
    """Encode and sort query parameters by key (byte-wise), joined with '&'."""
    items = params.items() if isinstance(params, Mapping) else params
    pairs = sorted(
        ((str(k), str(v)) for k, v in items),
        key=lambda kv: (kv[0].encode("utf-8"), kv[1].encode("utf-8")),
    )
    return "&".join(f"{percent_encode(k)}={percent_encode(v)}" for k, v in pairs)
