"""Per-provider request signers."""

from .aliyun import AliyunSigner
from .aws_sigv4 import AwsSigV4Signer, SignedRequest
from .encoding import canonical_query, percent_encode

__all__ = [
    "AliyunSigner",
    "AwsSigV4Signer",
    "SignedRequest",
    "canonical_query",
    "percent_encode",
]
