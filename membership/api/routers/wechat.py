"""WeChat login routes."""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends

from ...services.linking import IdentityLinker
from ..deps import device_id_header, get_linker
from ..schemas import LinkCallbackRequest

router = APIRouter(prefix="/api/auth/wechat", tags=["wechat"])


@router.get("/start")
def wechat_start(
    redirect: Optional[str] = None,
    linker: IdentityLinker = Depends(get_linker),
):
    """Begin a WeChat login; the returned state must come back on callback."""

    return linker.start(redirect).to_dict()


@router.post("/callback")
async def wechat_callback(
    body: LinkCallbackRequest,
    device_id: Optional[str] = Depends(device_id_header),
    linker: IdentityLinker = Depends(get_linker),
):
    result = await linker.callback(body.code, body.state, device_id)
    return result.to_dict()


__all__ = ["router"]
