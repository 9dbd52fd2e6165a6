"""AWS Signature Version 4 request signing.

Pure functions of (request, credential, timestamp): no clock reads, no I/O.
"""

import hashlib
import hmac
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Dict, List, Mapping, Optional, Tuple, Union

from .encoding import QueryParams, canonical_query

ALGORITHM = "AWS4-HMAC-SHA256"
TERMINATOR = "aws4_request"

_WHITESPACE = re.compile(r"\s+")


def sha256_hex(data: bytes) -> str:
    """Lower-case hex SHA-256 digest."""
    return hashlib.sha256(data).hexdigest()


def hmac_sha256(key: bytes, msg: str) -> bytes:
    return hmac.new(key, msg.encode("utf-8"), hashlib.sha256).digest()


def derive_signing_key(secret_key: str, date_stamp: str, region: str, service: str) -> bytes:
    """Four-stage HMAC chain: date, region, service, terminator."""
    k_date = hmac_sha256(f"AWS4{secret_key}".encode("utf-8"), date_stamp)
    k_region = hmac_sha256(k_date, region)
    k_service = hmac_sha256(k_region, service)
    return hmac_sha256(k_service, TERMINATOR)


def _normalize_timestamp(timestamp: datetime) -> datetime:
    if timestamp.tzinfo is None:
        return timestamp.replace(tzinfo=timezone.utc)
    return timestamp.astimezone(timezone.utc)


@dataclass
class SignedRequest:
    """Result of signing: headers to send plus the intermediate strings."""

    headers: Dict[str, str]
    authorization: str
    signature: str
    canonical_request: str
    string_to_sign: str
    signed_headers: str
    credential_scope: str
    payload_hash: str
    amz_date: str


class AwsSigV4Signer:
    """Signs requests with an AWS access key pair."""

    def __init__(self, access_key_id: str, secret_key: str, sign_content_sha256: bool = True):
        self.access_key_id = access_key_id
        self._secret_key = secret_key
        self.sign_content_sha256 = sign_content_sha256

    def sign(
        self,
        method: str,
        service: str,
        region: str,
        host: str,
        uri: str = "/",
        query: Union[str, QueryParams, None] = "",
        headers: Optional[Mapping[str, str]] = None,
        body: Union[bytes, str] = b"",
        timestamp: Optional[datetime] = None,
    ) -> SignedRequest:
        """Sign a request.

        Args:
            method: HTTP method
            service: Service name used in the credential scope (e.g. 'ce', 'sts')
            region: Signing region; may differ from the account's own region
            host: Host header value
            uri: Absolute path, already URI-encoded
            query: Pre-encoded query string, or parameters to canonicalize
            headers: Extra headers to sign
            body: Request payload
            timestamp: Signing time (UTC)

        Returns:
            SignedRequest with the full header set to send
        """
        if timestamp is None:
            raise ValueError("timestamp is required for deterministic signing")
        timestamp = _normalize_timestamp(timestamp)
        amz_date = timestamp.strftime("%Y%m%dT%H%M%SZ")
        date_stamp = timestamp.strftime("%Y%m%d")

        payload = body.encode("utf-8") if isinstance(body, str) else bytes(body)
        payload_hash = sha256_hex(payload)

        query_string = self._query_string(query)

        all_headers: List[Tuple[str, str]] = [(k, v) for k, v in (headers or {}).items()]
        all_headers.append(("host", host))
        all_headers.append(("x-amz-date", amz_date))
        if self.sign_content_sha256:
            all_headers.append(("x-amz-content-sha256", payload_hash))

        canonical_headers, signed_headers = self.canonicalize_headers(all_headers)

        canonical_request = "\n".join([
            method.upper(),
            uri or "/",
            query_string,
            canonical_headers,
            signed_headers,
            payload_hash,
        ])

        credential_scope = f"{date_stamp}/{region}/{service}/{TERMINATOR}"
        string_to_sign = "\n".join([
            ALGORITHM,
            amz_date,
            credential_scope,
            sha256_hex(canonical_request.encode("utf-8")),
        ])

        signing_key = derive_signing_key(self._secret_key, date_stamp, region, service)
        signature = hmac.new(signing_key, string_to_sign.encode("utf-8"), hashlib.sha256).hexdigest()

        authorization = (
            f"{ALGORITHM} Credential={self.access_key_id}/{credential_scope}, "
            f"SignedHeaders={signed_headers}, Signature={signature}"
        )

        out_headers = {k: v for k, v in (headers or {}).items()}
        out_headers["Host"] = host
        out_headers["X-Amz-Date"] = amz_date
        if self.sign_content_sha256:
            out_headers["X-Amz-Content-Sha256"] = payload_hash
        out_headers["Authorization"] = authorization

        return SignedRequest(
            headers=out_headers,
            authorization=authorization,
            signature=signature,
            canonical_request=canonical_request,
            string_to_sign=string_to_sign,
            signed_headers=signed_headers,
            credential_scope=credential_scope,
            payload_hash=payload_hash,
            amz_date=amz_date,
        )

    @staticmethod
    def canonicalize_headers(headers: List[Tuple[str, str]]) -> Tuple[str, str]:
        """Build the canonical header block and the signed-headers list.

        Names are lower-cased and sorted; values are trimmed with inner
        whitespace collapsed. Repeated names are joined with commas.
        """
        merged: Dict[str, List[str]] = {}
        for name, value in headers:
            key = name.strip().lower()
            merged.setdefault(key, []).append(_WHITESPACE.sub(" ", str(value).strip()))

        names = sorted(merged)
        canonical = "".join(f"{name}:{','.join(merged[name])}\n" for name in names)
        return canonical, ";".join(names)

    @staticmethod
    def _query_string(query: Union[str, QueryParams, None]) -> str:
        if not query:
            return ""
        if isinstance(query, str):
            return query
        return canonical_query(query)
