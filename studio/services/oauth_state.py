"""Signed OAuth ``state`` for the account-link round trip.

The provider redirect can't carry session data, so (user, workspace,
platform) travel inside the state parameter as an HS256 JWT with a short
expiry. The PKCE verifier is never put in the state: it is derived from the
state's nonce with the server secret, so only this server can recompute it.
"""

import base64
import hashlib
import hmac
import secrets
import time
from dataclasses import dataclass
from typing import Optional

from jose import jwt, ExpiredSignatureError, JWTError

from studio.config import settings
from studio.errors import ValidationError

ALGORITHM = "HS256"
# per-process fallback; links then only survive while this process lives
_FALLBACK_SECRET = secrets.token_urlsafe(32)


@dataclass
class LinkState:
    user_id: str
    workspace_id: str
    platform: str
    nonce: str
    issued_at: int

    @property
    def code_verifier(self) -> str:
        return pkce_verifier(self.nonce)


def _secret() -> str:
    return settings.state_secret or settings.fernet_key or _FALLBACK_SECRET

def pkce_verifier(nonce: str) -> str:
    digest = hmac.new(_secret().encode(), f"pkce:{nonce}".encode(), hashlib.sha256).digest()
    return base64.urlsafe_b64encode(digest).decode().rstrip("=")

def pkce_challenge(verifier: str) -> str:
    digest = hashlib.sha256(verifier.encode()).digest()
    return base64.urlsafe_b64encode(digest).decode().rstrip("=")

def new_state(user_id: str, workspace_id: str, platform: str, now: Optional[int] = None) -> LinkState:
    issued = int(now if now is not None else time.time())
    return LinkState(
        user_id=user_id,
        workspace_id=workspace_id,
        platform=platform,
        nonce=secrets.token_urlsafe(16),
        issued_at=issued,
    )

def sign_state(state: LinkState) -> str:
    claims = {
        "uid": state.user_id,
        "wid": state.workspace_id,
        "plt": state.platform,
        "nonce": state.nonce,
        "iat": state.issued_at,
        "exp": state.issued_at + settings.state_ttl_seconds,
    }
    return jwt.encode(claims, _secret(), algorithm=ALGORITHM)

def decode_state(token: str, platform: str) -> LinkState:
    try:
        claims = jwt.decode(token, _secret(), algorithms=[ALGORITHM])
    except ExpiredSignatureError:
        raise ValidationError("Link request expired. Please try again.")
    except JWTError:
        raise ValidationError("Invalid state")

    if claims.get("plt") != platform:
        raise ValidationError("Invalid state: platform mismatch")
    if not claims.get("uid") or not claims.get("wid") or not claims.get("nonce"):
        raise ValidationError("Invalid state: missing required fields")
    return LinkState(
        user_id=str(claims["uid"]),
        workspace_id=str(claims["wid"]),
        platform=platform,
        nonce=str(claims["nonce"]),
        issued_at=int(claims.get("iat", 0)),
    )

def peek_workspace_id(token: str) -> Optional[str]:
    """Workspace id from a state whose signature checks out, ignoring expiry."""
    try:
        claims = jwt.decode(token, _secret(), algorithms=[ALGORITHM], options={"verify_exp": False})
    except JWTError:
        return None
    wid = claims.get("wid")
    return str(wid) if wid else None
