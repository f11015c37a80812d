"""HS256 JWTs in the shape Supabase issues for its users.

Supabase signs access tokens with the project JWT secret, so ``decode_token``
can verify them without a round trip. ``create_token`` mints the same shape
(``sub``, ``role``, ``email``, ``aud=authenticated``) for the CLI and tests.
"""

import base64
import hashlib
import hmac
import json
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

_HEADER = {"alg": "HS256", "typ": "JWT"}


@dataclass(frozen=True)
class TokenPayload:
    sub: str
    role: str
    email: str
    exp: datetime


def _b64url(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode("ascii")


def _b64url_decode(segment: str) -> bytes:
    return base64.urlsafe_b64decode(segment + "=" * (-len(segment) % 4))


def _sign(signing_input: str, secret: str) -> str:
    digest = hmac.new(secret.encode(), signing_input.encode("ascii"), hashlib.sha256).digest()
    return _b64url(digest)


def create_token(
    subject: str,
    secret: str,
    role: str = "authenticated",
    email: str = "",
    algorithm: str = "HS256",
    expires_hours: int = 1,
) -> str:
    """Sign a token for *subject* (a Supabase ``auth.users.id``).

    Only HS256 is supported. A negative *expires_hours* yields an already
    expired token.
    """
    if algorithm != "HS256":
        raise ValueError(f"Unsupported algorithm: {algorithm}")

    issued = int(time.time())
    claims = {
        "sub": subject,
        "role": role,
        "email": email,
        "aud": "authenticated",
        "iat": issued,
        "exp": issued + int(expires_hours * 3600),
        "iss": "clixen",
    }
    signing_input = ".".join(
        _b64url(json.dumps(part, separators=(",", ":")).encode()) for part in (_HEADER, claims)
    )
    return f"{signing_input}.{_sign(signing_input, secret)}"


def decode_token(token: str, secret: str, algorithm: str = "HS256") -> Optional[TokenPayload]:
    """Verify *token* and return its payload, or None when it is not acceptable.

    Rejected: wrong algorithm, bad signature, expired, no ``sub``, or
    anything malformed.
    """
    if algorithm != "HS256" or not token:
        return None
    try:
        header_b64, claims_b64, signature = token.split(".")
        if json.loads(_b64url_decode(header_b64)).get("alg") != "HS256":
            return None
        if not hmac.compare_digest(_sign(f"{header_b64}.{claims_b64}", secret), signature):
            return None
        claims = json.loads(_b64url_decode(claims_b64))
    except (ValueError, TypeError, AttributeError, UnicodeError):
        return None

    exp = claims.get("exp")
    if not isinstance(exp, (int, float)) or exp < time.time():
        return None
    if not claims.get("sub"):
        return None

    return TokenPayload(
        sub=str(claims["sub"]),
        role=claims.get("role") or "",
        email=claims.get("email") or "",
        exp=datetime.fromtimestamp(exp, tz=timezone.utc),
    )
