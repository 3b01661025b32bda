"""
Bearer token authentication for the energywatch API.

Session issuance lives in an external service; energywatch only needs to
know which user an issued token belongs to. The USER_TOKENS setting maps
tokens to user ids, and every request is resolved against that map with
secrets.compare_digest. The whole map is scanned for every request so the
time taken does not depend on which entry matched.

The resolved user id is also stored on ``request.state.user_id`` so that
log records of downstream handlers can carry it.

CHANGELOG:
- 2026-10-15: Scan the whole token map; reject conflicting duplicate tokens
- 2026-10-11: Initial creation

TODO:
- None
"""

import logging
import secrets

from fastapi import HTTPException, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

logger = logging.getLogger(__name__)

_CHALLENGE = {"WWW-Authenticate": "Bearer"}


def parse_user_tokens(raw: str) -> dict[str, str]:
    """Parse USER_TOKENS (``"token1:user1,token2:user2"``) into token -> user_id.

    Whitespace around tokens and user ids is ignored and only the first
    colon separates them, so user ids may themselves contain colons.
    Entries without a colon or with an empty side are skipped with a
    warning. A token listed twice for different users is dropped entirely,
    since either mapping could be the wrong one.

    Args:
        raw: The raw USER_TOKENS value.

    Returns:
        dict[str, str]: Mapping of token -> user_id.
    """
    token_map: dict[str, str] = {}
    conflicting: set[str] = set()

    for position, entry in enumerate((raw or "").split(",")):
        token, sep, user_id = (part.strip() for part in entry.partition(":"))
        if not entry.strip():
            continue
        if not sep or not token or not user_id:
            logger.warning(
                "Skipping malformed USER_TOKENS entry at position %d", position
            )
            continue
        if token_map.get(token, user_id) != user_id:
            conflicting.add(token)
        token_map[token] = user_id

    for token in conflicting:
        del token_map[token]
    if conflicting:
        logger.warning(
            "Ignoring %d USER_TOKENS token(s) assigned to more than one user",
            len(conflicting),
        )
    return token_map


def verify_bearer_token(token: str, token_map: dict[str, str]) -> str | None:
    """Resolve ``token`` to its user id.

    Args:
        token: Token extracted from the Authorization header.
        token_map: Mapping of valid token -> user_id.

    Returns:
        str | None: The user id, or None if the token is unknown or empty.
    """
    if not token:
        return None

    presented = token.encode("utf-8")
    resolved: str | None = None
    for candidate, user_id in token_map.items():
        if secrets.compare_digest(presented, candidate.encode("utf-8")):
            resolved = user_id
    return resolved


class BearerAuth:
    """FastAPI dependency resolving the calling user from a Bearer token.

    Attributes:
        token_map: Mapping of valid token -> user_id.
        scheme: HTTPBearer scheme, also used for the OpenAPI security docs.
    """

    def __init__(self, token_map: dict[str, str]) -> None:
        self.token_map = token_map
        self.scheme = HTTPBearer(auto_error=False)

    async def verify(self, request: Request) -> str:
        """Return the user id behind the request's Bearer token.

        Raises:
            HTTPException: 401 if the header is missing or the token unknown.
        """
        credentials: HTTPAuthorizationCredentials | None = await self.scheme(request)
        if credentials is None:
            raise HTTPException(
                status_code=401,
                detail="Missing authorization credentials.",
                headers=_CHALLENGE,
            )

        user_id = verify_bearer_token(credentials.credentials, self.token_map)
        if user_id is None:
            logger.info(
                "Rejected bearer token on %s %s", request.method, request.url.path
            )
            raise HTTPException(
                status_code=401,
                detail="Invalid or expired token.",
                headers=_CHALLENGE,
            )

        request.state.user_id = user_id
        return user_id
