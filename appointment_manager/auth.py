"""
Operator authentication

Sessions and credentials are managed upstream; this service only checks that
the caller presents one of the configured bearer tokens and uses the matching
email as the actor in the activity log.
"""

import hmac
import logging
from dataclasses import dataclass
from typing import Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from . import config
from .errors import Unauthorized

logger = logging.getLogger(__name__)

security = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class Operator:
    email: str


def parse_api_tokens(raw: str) -> dict[str, str]:
    """Parse "email:token,email:token" into {token: email}"""
    tokens = {}
    for pair in raw.split(","):
        pair = pair.strip()
        if not pair:
            continue
        email, sep, token = pair.partition(":")
        if not sep or not email.strip() or not token.strip():
            logger.warning("⚠️ Ignoring malformed API_TOKENS entry")
            continue
        tokens[token.strip()] = email.strip()
    return tokens


def resolve_operator(token: str, raw_tokens: Optional[str] = None) -> Optional[Operator]:
    """Find the operator owning `token`, comparing in constant time"""
    tokens = parse_api_tokens(config.API_TOKENS if raw_tokens is None else raw_tokens)
    for known_token, email in tokens.items():
        if hmac.compare_digest(known_token, token):
            return Operator(email=email)
    return None


def get_current_operator(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> Operator:
    """FastAPI dependency: reject requests without a valid bearer token"""
    if credentials is None or not credentials.credentials:
        raise Unauthorized("Not authenticated. Please provide a valid Bearer token.")

    operator = resolve_operator(credentials.credentials)
    if operator is None:
        logger.warning("⚠️ Rejected request with unknown API token")
        raise Unauthorized("Invalid API token")
    return operator
