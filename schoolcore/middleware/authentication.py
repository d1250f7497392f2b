from typing import Optional

from fastapi import Depends, HTTPException, status, Request
from fastapi.security import OAuth2PasswordBearer
from pydantic import BaseModel

from schoolcore.config import settings

# Tokens are issued by the school API itself; this service only forwards them
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login")


class ApiCredentials(BaseModel):
    token: str
    school_id: Optional[str] = None


async def get_api_credentials(
    request: Request,
    token: str = Depends(oauth2_scheme),
) -> ApiCredentials:
    """
    Collect the caller's bearer token and school scope for forwarding.

    Raises:
        HTTPException: If the school-scope header is missing
    """
    school_id = request.headers.get(settings.SCHOOL_ID_HEADER)
    if not school_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"Missing {settings.SCHOOL_ID_HEADER} header",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return ApiCredentials(token=token, school_id=school_id)
