from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from parkmitra.core.auth_utils import Principal, decode_token
from parkmitra.services.container import ParkingServices

security = HTTPBearer()


def get_services(request: Request) -> ParkingServices:
    return request.app.state.services


def get_current_principal(
    request: Request,
    credentials: HTTPAuthorizationCredentials = Depends(security),
) -> Principal:
    settings = request.app.state.auth
    return decode_token(
        credentials.credentials,
        secret=settings["secret"],
        algorithm=settings["algorithm"],
    )


def require_roles(*roles: str):
    def checker(principal: Principal = Depends(get_current_principal)) -> Principal:
        if principal.role not in roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Requires role: {', '.join(roles)}"
            )
        return principal

    return checker
