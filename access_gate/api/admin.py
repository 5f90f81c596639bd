from __future__ import annotations

import logging
from typing import Annotated

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from access_gate.api.dependencies import require_admin
from access_gate.models.principal import Principal

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["admin"])


class GuardOut(BaseModel):
    ok: bool


@router.get("/guard", response_model=GuardOut)
async def admin_guard(
    principal: Annotated[Principal, Depends(require_admin)],
) -> GuardOut:
    """Lets the admin console ask "am I an admin?" before rendering."""
    logger.info("Admin guard passed for user=%s", principal.user_id)
    return GuardOut(ok=True)
