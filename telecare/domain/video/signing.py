"""
HMAC-SHA256 signed assertions for the video-hosting API.

The video API recomputes the signature over the exact bytes we send, so the
encoding is fixed:

    token     = b64url(header) + "." + b64url(payload) + "." + b64url(signature)
    header    = {"typ":"JWT","alg":"HS256"}            (compact JSON, this key order)
    signature = HMAC-SHA256(api_secret, b64url(header) + "." + b64url(payload))

``b64url`` is URL-safe base64 with the trailing "=" padding removed. JSON is
serialized with ``separators=(",", ":")`` and dict insertion order.
"""

import base64
import hashlib
import hmac
import json
import secrets
import time
from typing import Optional

HEADER = {"typ": "JWT", "alg": "HS256"}
AUTH_ASSERTION_TTL = 300


class InvalidTokenError(ValueError):
    """Token is malformed, has a bad signature or has expired"""


def b64url_encode(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode("ascii")


def b64url_decode(value: str) -> bytes:
    padding = "=" * (-len(value) % 4)
    return base64.urlsafe_b64decode(value + padding)


def encode_json(obj: dict) -> bytes:
    return json.dumps(obj, separators=(",", ":")).encode("utf-8")


class AssertionSigner:
    def __init__(self, api_key: str, api_secret: str):
        self.api_key = api_key
        self.api_secret = api_secret

    def _signature(self, signing_input: str) -> str:
        digest = hmac.new(
            self.api_secret.encode("utf-8"), signing_input.encode("ascii"), hashlib.sha256
        ).digest()
        return b64url_encode(digest)

    def sign(self, payload: dict) -> str:
        signing_input = f"{b64url_encode(encode_json(HEADER))}.{b64url_encode(encode_json(payload))}"
        return f"{signing_input}.{self._signature(signing_input)}"

    def auth_assertion(self, now: Optional[int] = None) -> str:
        """Short-lived assertion that authenticates REST calls to the video API"""
        now = int(time.time()) if now is None else now
        return self.sign(
            {
                "iss": self.api_key,
                "ist": "project",
                "iat": now,
                "exp": now + AUTH_ASSERTION_TTL,
            }
        )

    def join_token(self, session_id: str, expire_at: int, now: Optional[int] = None) -> str:
        """Client token scoped to one session path, valid until ``expire_at`` (unix seconds)"""
        now = int(time.time()) if now is None else now
        return self.sign(
            {
                "iss": self.api_key,
                "ist": "project",
                "iat": now,
                "jti": f"{now}_{secrets.token_hex(8)}",
                "exp": expire_at,
                "acl": {"paths": {f"/session/{session_id}": {}}},
            }
        )

    def verify(self, token: str, now: Optional[int] = None) -> dict:
        """Check signature and expiry, returning the decoded payload"""
        parts = token.split(".") if token else []
        if len(parts) != 3:
            raise InvalidTokenError("Invalid token format")

        header_b64, payload_b64, signature_b64 = parts
        expected = self._signature(f"{header_b64}.{payload_b64}")
        if not hmac.compare_digest(expected, signature_b64):
            raise InvalidTokenError("Invalid token signature")

        try:
            header = json.loads(b64url_decode(header_b64))
            payload = json.loads(b64url_decode(payload_b64))
        except (ValueError, UnicodeDecodeError) as e:
            raise InvalidTokenError("Invalid token encoding") from e

        if header != HEADER:
            raise InvalidTokenError("Unsupported token header")

        now = int(time.time()) if now is None else now
        exp = payload.get("exp")
        if not isinstance(exp, int) or now >= exp:
            raise InvalidTokenError("Token has expired")

        return payload


def token_grants_session(payload: dict, session_id: str) -> bool:
    paths = payload.get("acl", {}).get("paths", {})
    return f"/session/{session_id}" in paths
