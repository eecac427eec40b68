"""Bearer token verification against the identity provider's published signing keys."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional

import httpx
from fastapi import HTTPException, status
from jose import jwt
from jose.exceptions import JWTError

from compliance_workflow.config import settings
from compliance_workflow.db.enums import ActorRoleEnum


logger = logging.getLogger("auth.tokens")


@dataclass(frozen=True)
class AccessClaims:
    user_id: str
    org_id: str
    role: ActorRoleEnum


class SigningKeys:
    """JWKS document cached for ``ttl_seconds``; an unknown ``kid`` forces one refetch."""

    def __init__(
        self,
        jwks_url: Optional[str],
        *,
        ttl_seconds: int = 300,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self.jwks_url = jwks_url
        self.ttl_seconds = ttl_seconds
        self._transport = transport
        self._keys: Dict[str, Dict[str, Any]] = {}
        self._fetched_at = 0.0

    def key_for(self, kid: str) -> Dict[str, Any]:
        if not self._keys or (time.time() - self._fetched_at) >= self.ttl_seconds:
            self._refresh()
        key = self._keys.get(kid)
        if key is None:
            # Keys may have rotated since the last fetch.
            self._refresh()
            key = self._keys.get(kid)
        if key is None:
            logger.warning("auth.signing_key_not_found", extra={"kid": kid})
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Signing key not found")
        return key

    def _refresh(self) -> None:
        if not self.jwks_url:
            raise HTTPException(
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                detail="Token verification is not configured",
            )
        try:
            with httpx.Client(transport=self._transport, timeout=10) as client:
                resp = client.get(self.jwks_url)
                resp.raise_for_status()
                data = resp.json()
        except (httpx.HTTPError, ValueError) as exc:
            logger.exception("auth.jwks_fetch_failed", extra={"jwks_url": self.jwks_url})
            raise HTTPException(
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                detail="Unable to fetch signing keys",
            ) from exc
        self._keys = {key["kid"]: key for key in data.get("keys", []) if key.get("kid")}
        self._fetched_at = time.time()


_signing_keys = SigningKeys(settings.AUTH_JWKS_URL)


def parse_access_claims(claims: Mapping[str, Any]) -> AccessClaims:
    """Identity and tenancy from verified claims. No subject is 401; no org or an unknown role is 403."""
    user_id = claims.get("sub")
    if not user_id:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token claims")
    org_id = claims.get("org_id") or claims.get("organization_id")
    if not org_id:
        logger.warning("auth.missing_org", extra={"sub": user_id, "claims_keys": sorted(claims.keys())})
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Missing organization context in token")
    try:
        role = ActorRoleEnum(claims.get("role"))
    except ValueError:
        logger.warning("auth.unknown_role", extra={"sub": user_id, "role": claims.get("role")})
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Unknown role") from None
    return AccessClaims(user_id=str(user_id), org_id=str(org_id), role=role)


def verify_access_token(token: str) -> AccessClaims:
    try:
        kid = jwt.get_unverified_header(token).get("kid")
    except JWTError as exc:
        logger.warning("auth.invalid_header", exc_info=exc)
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token") from exc
    if not kid:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing kid in token")

    public_key = _signing_keys.key_for(kid)
    try:
        claims = jwt.decode(
            token,
            public_key,
            algorithms=[public_key.get("alg", "RS256")],
            audience=settings.AUTH_AUDIENCE,
            issuer=settings.AUTH_JWT_ISSUER,
            options={"require_exp": True, "require_sub": True},
        )
    except JWTError as exc:
        logger.warning("auth.verification_failed", extra={"kid": kid}, exc_info=exc)
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token") from exc

    identity = parse_access_claims(claims)
    logger.debug(
        "auth.token_verified",
        extra={"kid": kid, "sub": identity.user_id, "org_id": identity.org_id, "role": identity.role.value},
    )
    return identity
