"""User data API routes.

Each user owns one inventory document, replaced wholesale on every save.
"""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Depends

from invtrac.server.api.deps import get_current_token, get_db
from invtrac.server.database import Database, user_data_key
from invtrac.server.models import Token
from invtrac.server.schemas import SaveResponse, UserData

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/user-data", tags=["user-data"])


@router.get("")
def get_user_data(
    token: Token = Depends(get_current_token),
    db: Database = Depends(get_db),
) -> dict[str, Any]:
    """Get the stored inventory, or an empty one."""
    data = db.kv_get(user_data_key(token.user_id))
    if data is None:
        return {"categories": [], "items": []}
    result: dict[str, Any] = data
    return result


@router.post("", response_model=SaveResponse)
def save_user_data(
    request: UserData,
    token: Token = Depends(get_current_token),
    db: Database = Depends(get_db),
) -> SaveResponse:
    """Replace the stored inventory."""
    db.kv_set(user_data_key(token.user_id), request.model_dump(by_alias=True))
    logger.info(
        "Saved user data for user %d: %d categories, %d items",
        token.user_id,
        len(request.categories),
        len(request.items),
    )
    return SaveResponse(success=True)
