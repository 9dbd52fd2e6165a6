"""Alibaba Cloud (Aliyun) RPC Signature Version 1.0."""

import base64
import hashlib
import hmac
from datetime import datetime, timezone
from typing import Dict, Mapping

from .encoding import canonical_query, percent_encode

SIGNATURE_METHOD = "HMAC-SHA1"
SIGNATURE_VERSION = "1.0"


def format_timestamp(timestamp: datetime) -> str:
    """ISO-8601 UTC timestamp in the form the RPC API expects."""
    if timestamp.tzinfo is not None:
        timestamp = timestamp.astimezone(timezone.utc)
    return timestamp.strftime("%Y-%m-%dT%H:%M:%SZ")


class AliyunSigner:
    """Signs RPC-style query parameters with an AccessKey pair."""

    def __init__(self, access_key_id: str, secret: str):
        self.access_key_id = access_key_id
        self._secret = secret

    def common_params(
        self,
        action: str,
        version: str,
        timestamp: datetime,
        nonce: str,
        response_format: str = "JSON",
    ) -> Dict[str, str]:
        """Parameters every RPC request carries besides its own arguments."""
        return {
            "Format": response_format,
            "Version": version,
            "AccessKeyId": self.access_key_id,
            "SignatureMethod": SIGNATURE_METHOD,
            "Timestamp": format_timestamp(timestamp),
            "SignatureVersion": SIGNATURE_VERSION,
            "SignatureNonce": nonce,
            "Action": action,
        }

    @staticmethod
    def string_to_sign(params: Mapping[str, str], method: str = "GET") -> str:
        return f"{method.upper()}&{percent_encode('/')}&{percent_encode(canonical_query(params))}"

    def signature(self, params: Mapping[str, str], method: str = "GET") -> str:
        """Base64 HMAC-SHA1 of the string to sign, keyed by secret + '&'."""
        key = f"{self._secret}&".encode("utf-8")
        digest = hmac.new(key, self.string_to_sign(params, method).encode("utf-8"), hashlib.sha1).digest()
        return base64.b64encode(digest).decode("ascii")

    def sign(self, params: Mapping[str, str], method: str = "GET") -> Dict[str, str]:
        """Return a copy of params with the Signature field added."""
        unsigned = {k: str(v) for k, v in params.items() if k != "Signature"}
        signed = dict(unsigned)
        signed["Signature"] = self.signature(unsigned, method)
        return signed

    @staticmethod
    def to_query_string(signed_params: Mapping[str, str]) -> str:
        """Serialize signed parameters as the final query string."""
        return canonical_query(signed_params)
