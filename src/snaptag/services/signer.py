"""
AWS Signature Version 4 signing for single-object S3 PUT requests.

Implemented from scratch with ``hashlib`` and ``hmac`` so that uploads need no
vendor SDK and no ambient credential discovery. Only the subset needed for a
PUT without a query string is covered:

1. Canonical request::

       PUT
       /<percent-encoded key>
       <empty query string>
       content-type:<type>
       host:<host>
       x-amz-content-sha256:<payload sha256 hex>
       x-amz-date:<YYYYMMDDTHHMMSSZ>

       content-type;host;x-amz-content-sha256;x-amz-date
       <payload sha256 hex>

2. String to sign: algorithm, timestamp, credential scope
   (``YYYYMMDD/<region>/s3/aws4_request``) and the SHA-256 of the canonical
   request, joined by newlines.

3. Signing key: ``HMAC("AWS4" + secret, date)`` chained through region,
   service and ``aws4_request``; the signature is the hex HMAC of the string
   to sign under that key.

Every function here is pure. The request timestamp is taken once by the
caller and threaded through both ``x-amz-date`` and the credential scope.
"""

import hashlib
import hmac
from dataclasses import dataclass
from datetime import UTC, datetime
from urllib.parse import quote

ALGORITHM = "AWS4-HMAC-SHA256"
SERVICE = "s3"
TERMINATOR = "aws4_request"
KEY_PREFIX = "AWS4"
SIGNED_HEADER_NAMES = ("content-type", "host", "x-amz-content-sha256", "x-amz-date")
SIGNED_HEADERS = ";".join(SIGNED_HEADER_NAMES)


def sha256_hex(data: bytes) -> str:
    """Lowercase hex SHA-256 digest."""
    return hashlib.sha256(data).hexdigest()


def payload_hash(payload: bytes) -> str:
    """Digest of the exact request body, as sent in ``x-amz-content-sha256``."""
    return sha256_hex(payload)


def _hmac(key: bytes, message: str) -> bytes:
    return hmac.new(key, message.encode("utf-8"), hashlib.sha256).digest()


def _as_utc(timestamp: datetime) -> datetime:
    if timestamp.tzinfo is None:
        return timestamp.replace(tzinfo=UTC)
    return timestamp.astimezone(UTC)


def amz_date(timestamp: datetime) -> str:
    """Format a timestamp as ``YYYYMMDDTHHMMSSZ`` (naive values are taken as UTC)."""
    return _as_utc(timestamp).strftime("%Y%m%dT%H%M%SZ")


def date_stamp(timestamp: datetime) -> str:
    """Eight-digit date used in the credential scope."""
    return amz_date(timestamp)[:8]


def credential_scope(timestamp: datetime, region: str, service: str = SERVICE) -> str:
    return f"{date_stamp(timestamp)}/{region}/{service}/{TERMINATOR}"


def encode_path(path: str) -> str:
    """
    Percent-encode an object path the way S3 expects.

    Each segment is URI-encoded with only unreserved characters left as is;
    slashes separate segments and are kept. A leading slash is ensured.
    """
    if not path.startswith("/"):
        path = "/" + path
    return quote(path, safe="/-_.~")


def canonical_headers(content_type: str, host: str, content_sha256: str, request_date: str) -> str:
    """Canonical header block, one ``name:value`` line per signed header, sorted by name."""
    headers = {
        "content-type": content_type.strip(),
        "host": host.strip(),
        "x-amz-content-sha256": content_sha256,
        "x-amz-date": request_date,
    }
    return "".join(f"{name}:{headers[name]}\n" for name in sorted(headers))


def canonical_request(
    method: str,
    path: str,
    content_type: str,
    host: str,
    content_sha256: str,
    request_date: str,
) -> str:
    """
    Build the canonical request string.

    ``path`` must already be percent-encoded. The query string line is always
    empty because a single-object PUT carries no query parameters.
    """
    return "\n".join(
        [
            method.upper(),
            path,
            "",
            canonical_headers(content_type, host, content_sha256, request_date),
            SIGNED_HEADERS,
            content_sha256,
        ]
    )


def string_to_sign(timestamp: datetime, scope: str, canonical: str) -> str:
    return "\n".join([ALGORITHM, amz_date(timestamp), scope, sha256_hex(canonical.encode("utf-8"))])


def derive_signing_key(secret_key: str, date: str, region: str, service: str = SERVICE) -> bytes:
    """Four chained HMAC-SHA256 steps: date, region, service, terminator."""
    k_date = _hmac(f"{KEY_PREFIX}{secret_key}".encode("utf-8"), date)
    k_region = _hmac(k_date, region)
    k_service = _hmac(k_region, service)
    return _hmac(k_service, TERMINATOR)


def sign(
    method: str,
    host: str,
    path: str,
    payload: bytes,
    content_type: str,
    access_key_id: str,
    secret_key: str,
    region: str,
    timestamp: datetime,
) -> str:
    """
    Compute the ``Authorization`` header value for a single-object request.

    Args:
        method: HTTP method, e.g. "PUT"
        host: Virtual-hosted bucket host, e.g. "bucket.s3.us-east-1.amazonaws.com"
        path: Percent-encoded object path starting with "/"
        payload: Exact request body
        content_type: Value of the Content-Type header
        access_key_id: Access key id embedded in the credential
        secret_key: Secret access key used to derive the signing key
        region: Region of the bucket
        timestamp: Request time; the same value must be sent as x-amz-date

    Returns:
        str: ``AWS4-HMAC-SHA256 Credential=..., SignedHeaders=..., Signature=...``
    """
    content_sha256 = payload_hash(payload)
    request_date = amz_date(timestamp)
    scope = credential_scope(timestamp, region)

    canonical = canonical_request(method, path, content_type, host, content_sha256, request_date)
    to_sign = string_to_sign(timestamp, scope, canonical)

    signing_key = derive_signing_key(secret_key, date_stamp(timestamp), region)
    signature = hmac.new(signing_key, to_sign.encode("utf-8"), hashlib.sha256).hexdigest()

    return f"{ALGORITHM} Credential={access_key_id}/{scope}, SignedHeaders={SIGNED_HEADERS}, Signature={signature}"


@dataclass(frozen=True)
class Signer:
    """Signs PUT requests with one long-term key pair for one region."""

    access_key_id: str
    secret_key: str
    region: str

    def sign(
        self, method: str, host: str, path: str, payload: bytes, content_type: str, timestamp: datetime
    ) -> str:
        return sign(
            method,
            host,
            path,
            payload,
            content_type,
            self.access_key_id,
            self.secret_key,
            self.region,
            timestamp,
        )

    def build_put_headers(
        self, host: str, path: str, payload: bytes, content_type: str, timestamp: datetime
    ) -> dict[str, str]:
        """
        Headers for a signed PUT, all derived from one captured timestamp.

        Returns:
            dict with Content-Type, x-amz-date, x-amz-content-sha256 and Authorization
        """
        return {
            "Content-Type": content_type,
            "x-amz-date": amz_date(timestamp),
            "x-amz-content-sha256": payload_hash(payload),
            "Authorization": self.sign("PUT", host, path, payload, content_type, timestamp),
        }
