"""Video session issuer - creates sessions on the video-hosting API and signs join tokens"""

import json
import logging
import re
from typing import Optional

import httpx
from fastapi import Request

from ...config import (
    VIDEO_API_KEY,
    VIDEO_API_SECRET,
    VIDEO_API_TIMEOUT,
    VIDEO_API_URL,
    VIDEO_AUTH_HEADER,
)
from ...errors import VideoUnavailableError
from .signing import AssertionSigner, InvalidTokenError, token_grants_session

logger = logging.getLogger(__name__)

SESSION_ID_PATTERN = re.compile(r"<session_id>(.*?)</session_id>")


def parse_session_id(body: str) -> Optional[str]:
    """Extract the session id from an XML or JSON session/create response"""
    match = SESSION_ID_PATTERN.search(body)
    if match and match.group(1):
        return match.group(1)

    try:
        data = json.loads(body)
    except ValueError:
        return None

    if isinstance(data, list) and data:
        data = data[0]
    if isinstance(data, dict):
        return data.get("session_id")
    return None


class SessionIssuer:
    """Client for the external video-hosting REST API"""

    def __init__(
        self,
        api_key: Optional[str] = VIDEO_API_KEY,
        api_secret: Optional[str] = VIDEO_API_SECRET,
        base_url: str = VIDEO_API_URL,
        auth_header: str = VIDEO_AUTH_HEADER,
        timeout: float = VIDEO_API_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.auth_header = auth_header
        self.timeout = timeout
        self.transport = transport
        self.signer = None

        if not api_key or not api_secret:
            logger.warning("VIDEO_API_KEY/VIDEO_API_SECRET not set; appointments will be booked without video")
        else:
            self.signer = AssertionSigner(api_key, api_secret)

    def is_available(self) -> bool:
        return self.signer is not None

    async def create_session(self) -> Optional[str]:
        """
        Create a routed session. Returns None on any failure so the caller can
        carry on without video.
        """
        if not self.signer:
            return None

        headers = {self.auth_header: self.signer.auth_assertion(), "Accept": "application/json"}
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.post(
                    f"{self.base_url}/session/create",
                    data={"p2p.preference": "disabled"},
                    headers=headers,
                )
        except httpx.HTTPError as e:
            logger.error(f"❌ Video session request failed: {e}")
            return None

        if response.status_code != 200:
            logger.error(f"❌ Video API error: HTTP {response.status_code} - {response.text[:200]}")
            return None

        session_id = parse_session_id(response.text)
        if not session_id:
            logger.error("❌ Could not extract session id from video API response")
            return None

        logger.info(f"🎥 Created video session {session_id}")
        return session_id

    def issue_join_token(self, session_id: str, expire_at: int) -> str:
        if not self.signer:
            raise VideoUnavailableError(
                "Video calling service is currently unavailable. Please try again later."
            )
        return self.signer.join_token(session_id, expire_at)

    def verify_join_token(self, token: str, session_id: str, now: Optional[int] = None) -> dict:
        """Signature, expiry and session scope of a join token"""
        if not self.signer:
            raise VideoUnavailableError(
                "Video calling service is currently unavailable. Please try again later."
            )
        payload = self.signer.verify(token, now=now)
        if not token_grants_session(payload, session_id):
            raise InvalidTokenError("Token does not grant access to this session")
        return payload


def get_session_issuer(request: Request) -> SessionIssuer:
    """FastAPI dependency returning the issuer created in the app lifespan"""
    issuer = getattr(request.app.state, "session_issuer", None)
    if issuer is None:
        issuer = SessionIssuer()
        request.app.state.session_issuer = issuer
    return issuer
