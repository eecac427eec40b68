from dataclasses import dataclass
import logging
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from compliance_workflow.auth.tokens import verify_access_token
from compliance_workflow.db.enums import ActorRoleEnum
from compliance_workflow.workflow.capabilities import Capabilities


bearer_scheme = HTTPBearer(auto_error=False)
logger = logging.getLogger("auth.deps")


@dataclass
class AuthContext:
    user_id: str
    org_id: str
    role: ActorRoleEnum

    @property
    def capabilities(self) -> Capabilities:
        return Capabilities.for_role(self.role)


def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(bearer_scheme),
) -> AuthContext:
    if credentials is None or not credentials.credentials:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing bearer token")

    identity = verify_access_token(credentials.credentials)
    return AuthContext(user_id=identity.user_id, org_id=identity.org_id, role=identity.role)


def require_vendor(auth: AuthContext = Depends(get_current_user)) -> AuthContext:
    if auth.role != ActorRoleEnum.vendor:
        logger.info("auth.role_refused", extra={"sub": auth.user_id, "role": auth.role.value, "required": "vendor"})
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Vendor access required")
    return auth


def require_admin(auth: AuthContext = Depends(get_current_user)) -> AuthContext:
    if auth.role != ActorRoleEnum.admin:
        logger.info("auth.role_refused", extra={"sub": auth.user_id, "role": auth.role.value, "required": "admin"})
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin access required")
    return auth
