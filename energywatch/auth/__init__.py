"""
Authentication package.

Exports the BearerAuth dependency class and token parsing utilities
for use by FastAPI route handlers.
"""

from energywatch.auth.bearer import BearerAuth, parse_user_tokens, verify_bearer_token

__all__ = ["BearerAuth", "parse_user_tokens", "verify_bearer_token"]
