import base64
import json
from datetime import datetime, timezone
from typing import Any, Optional


def parse_access_token(access_token: str) -> dict[str, Any]:
    token_parts = access_token.split(".")
    if len(token_parts) < 2:
        raise ValueError("Invalid access token")
    payload = base64.urlsafe_b64decode(
        token_parts[1] + "=" * (-len(token_parts[1]) % 4)
    )
    return json.loads(payload)


def token_expiry(access_token: str) -> Optional[datetime]:
    """Read the ``exp`` claim of a JWT access token, if it has one.

    Opaque tokens are common, so anything that does not parse as a JWT simply
    has no known expiry.
    """
    try:
        claims = parse_access_token(access_token)
    except ValueError:
        return None

    exp = claims.get("exp") if isinstance(claims, dict) else None
    if not isinstance(exp, (int, float)):
        return None
    return datetime.fromtimestamp(exp, tz=timezone.utc)
