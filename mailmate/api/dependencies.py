"""FastAPI dependencies shared by the routers."""

from __future__ import annotations

from fastapi import HTTPException, Request, status

from mailmate.pipeline.service import MailPipeline

USER_ID_HEADER = "X-User-ID"


async def get_user_id(request: Request) -> str:
    """
    Caller identity, established by the upstream auth layer.

    Usage:
        @router.get("/endpoint")
        async def endpoint(user_id: str = Depends(get_user_id)):
            ...
    """
    user_id = (request.headers.get(USER_ID_HEADER) or "").strip()
    if not user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required.",
        )
    return user_id


def get_pipeline(request: Request) -> MailPipeline:
    return request.app.state.pipeline
