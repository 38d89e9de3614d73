from typing import Optional
from fastapi import Header, HTTPException, status
from pydantic import ValidationError

from app.schemas.auth import Principal


async def get_principal(
    x_user_id: Optional[str] = Header(None),
    x_user_role: str = Header("user"),
    x_outlet_ids: str = Header(""),
) -> Principal:
    """
    Builds the acting principal from headers set by the upstream identity
    layer, which has already authenticated the caller.
    """
    if not x_user_id:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Authentication required")
    try:
        return Principal(
            user_id=x_user_id,
            role=x_user_role,
            outlet_ids=[o.strip() for o in x_outlet_ids.split(",") if o.strip()],
        )
    except ValidationError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid principal")
