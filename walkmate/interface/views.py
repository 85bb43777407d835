"""HTTP views of the marketplace: role-gated pages and the actions behind them.

Pages return JSON projections of the catalog. Actions call the services and,
on failure, answer with an alert payload and a 4xx status.
"""

import logging
from datetime import datetime
from typing import Any

from fastapi import APIRouter, Depends, File, Form, HTTPException, Request, UploadFile, status
from fastapi.responses import JSONResponse, Response

from walkmate.core.config import constants
from walkmate.core.context import AppContext
from walkmate.core.errors import ErrorCode, classify_error_with_response
from walkmate.core.logging import log_with_user_context
from walkmate.domain.dog import DogSize
from walkmate.domain.user import Profile, UserRole
from walkmate.interface import projections
from walkmate.interface.routing import resolve_route
from walkmate.services import (
    catalog_service,
    chat_service,
    dog_service,
    profile_service,
    session_service,
    walk_service,
)


logger = logging.getLogger(__name__)

router = APIRouter(tags=["views"])

_STATUS_BY_CODE = {
    ErrorCode.ERR_INVALID_CREDENTIALS: status.HTTP_401_UNAUTHORIZED,
    ErrorCode.ERR_EMAIL_NOT_CONFIRMED: status.HTTP_401_UNAUTHORIZED,
    ErrorCode.ERR_AUTHENTICATION_FAILED: status.HTTP_401_UNAUTHORIZED,
    ErrorCode.ERR_PERMISSION_DENIED: status.HTTP_403_FORBIDDEN,
    ErrorCode.ERR_NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorCode.ERR_ALREADY_REGISTERED: status.HTTP_409_CONFLICT,
    ErrorCode.ERR_ALREADY_APPLIED: status.HTTP_409_CONFLICT,
    ErrorCode.ERR_INVALID_STATE_TRANSITION: status.HTTP_409_CONFLICT,
}


def get_ctx(request: Request) -> AppContext:
    """Application context attached at startup."""
    return request.app.state.ctx


async def require_view(request: Request, ctx: AppContext = Depends(get_ctx)) -> AppContext:
    """Apply the role router to the requested page, redirecting when it says so."""
    user = ctx.current_user
    decision = resolve_route(
        is_authenticated=user is not None,
        role=user.role if user else None,
        path=request.url.path,
    )
    if decision.is_redirect:
        logger.info(
            "view_redirect",
            extra={"path": decision.path, "redirect_to": decision.redirect_to, "user_id": user.id if user else None},
        )
        raise HTTPException(
            status_code=status.HTTP_303_SEE_OTHER,
            headers={"Location": decision.redirect_to},
        )
    return ctx


def _viewer(ctx: AppContext) -> Profile:
    user = ctx.current_user
    if user is None:
        raise HTTPException(status_code=status.HTTP_303_SEE_OTHER, headers={"Location": "/"})
    return user


def alert_response(exc: Exception, *, action: str, ctx: AppContext, **payload: Any) -> JSONResponse:
    """Classify a failed action into an alert with a 4xx status."""
    error = classify_error_with_response(exc)
    log_with_user_context(
        logger,
        "warning",
        "view_action_failed",
        user_id=ctx.current_user.id if ctx.current_user else None,
        action=action,
        code=error.code,
        error=str(exc),
    )
    return JSONResponse(
        status_code=_STATUS_BY_CODE.get(error.code, status.HTTP_400_BAD_REQUEST),
        content={"alert": error.model_dump(mode="json"), **payload},
    )


def _dump(value: Any) -> Any:
    if isinstance(value, list):
        return [_dump(item) for item in value]
    if hasattr(value, "model_dump"):
        return value.model_dump(mode="json")
    return value


# -- pages --------------------------------------------------------------------


@router.get("/")
async def get_landing(ctx: AppContext = Depends(require_view)) -> dict[str, Any]:
    """Logged-out landing page listing OPEN requests."""
    return {"loading": ctx.session.loading, "requests": _dump(ctx.catalog.requests)}


@router.get("/owner")
async def get_owner_dashboard(ctx: AppContext = Depends(require_view)) -> dict[str, Any]:
    return projections.owner_dashboard(ctx.catalog, _viewer(ctx)).model_dump(mode="json")


@router.get("/walker")
async def get_walker_dashboard(ctx: AppContext = Depends(require_view)) -> dict[str, Any]:
    return projections.walker_dashboard(ctx.catalog, _viewer(ctx)).model_dump(mode="json")


@router.get("/walks")
async def get_schedule(ctx: AppContext = Depends(require_view)) -> dict[str, Any]:
    """Upcoming and in-progress walks of the viewer."""
    return {"walks": _dump(projections.schedule(ctx.catalog, _viewer(ctx)))}


@router.get("/history")
async def get_history(ctx: AppContext = Depends(require_view)) -> dict[str, Any]:
    entries = projections.history(ctx.catalog, _viewer(ctx))
    return {"history": _dump(entries), "total_reward": sum(entry.reward for entry in entries)}


@router.get("/profile")
async def get_profile(ctx: AppContext = Depends(require_view)) -> dict[str, Any]:
    return {"user": _viewer(ctx).model_dump(mode="json"), "email": ctx.session.email}


@router.get("/requests/new")
async def get_request_form(ctx: AppContext = Depends(require_view)) -> dict[str, Any]:
    """Form options for posting a walk request."""
    user = _viewer(ctx)
    return {
        "dogs": _dump(ctx.catalog.dogs),
        "durations": list(constants.ALLOWED_DURATIONS_MINUTES),
        "default_region": "" if user.region_code == constants.DEFAULT_REGION_CODE else user.region_code,
        "min_lead_time_hours": constants.MIN_LEAD_TIME_HOURS,
    }


@router.get("/dogs/new")
async def get_dog_form(ctx: AppContext = Depends(require_view)) -> dict[str, Any]:
    return {"sizes": [size.value for size in DogSize], "max_upload_bytes": constants.MAX_UPLOAD_BYTES}


@router.get("/chat/{request_id}")
async def get_chat(request_id: str, ctx: AppContext = Depends(require_view)) -> Response:
    """Open the chat of a walk, or show the one already open."""
    channel = ctx.channels.get(request_id)
    if channel is None or not channel.is_open:
        try:
            channel = await chat_service.open_channel(ctx, request_id=request_id)
        except Exception as e:
            return alert_response(e, action="open_chat", ctx=ctx)

    return JSONResponse(
        content={
            "request": channel.request.model_dump(mode="json"),
            "messages": _dump(channel.messages),
            "can_send": channel.can_send,
            "viewer_id": channel.viewer_id,
        }
    )


# -- session actions ----------------------------------------------------------


@router.post("/auth/login")
async def post_login(
    *,
    email: str = Form(...),
    password: str = Form(...),
    ctx: AppContext = Depends(get_ctx),
) -> Response:
    try:
        profile = await session_service.login(ctx, email=email, password=password)
    except Exception as e:
        return alert_response(e, action="login", ctx=ctx)
    return JSONResponse(content={"user": profile.model_dump(mode="json"), "redirect": profile.home_path()})


@router.post("/auth/signup")
async def post_signup(
    *,
    email: str = Form(...),
    password: str = Form(...),
    nickname: str = Form(...),
    role: UserRole = Form(...),
    ctx: AppContext = Depends(get_ctx),
) -> Response:
    try:
        profile = await session_service.sign_up(ctx, email=email, password=password, nickname=nickname, role=role)
    except Exception as e:
        return alert_response(e, action="sign_up", ctx=ctx)

    if profile is None:
        return JSONResponse(status_code=status.HTTP_202_ACCEPTED, content={"awaiting_confirmation": True})
    return JSONResponse(content={"user": profile.model_dump(mode="json"), "redirect": profile.home_path()})


@router.post("/auth/logout")
async def post_logout(ctx: AppContext = Depends(get_ctx)) -> Response:
    try:
        await session_service.logout(ctx)
    except Exception as e:
        return alert_response(e, action="logout", ctx=ctx)
    return JSONResponse(content={"redirect": "/"})


@router.post("/profile")
async def post_profile(
    *,
    nickname: str | None = Form(default=None),
    region_code: str | None = Form(default=None),
    ctx: AppContext = Depends(get_ctx),
) -> Response:
    try:
        profile = await profile_service.update_profile(ctx, nickname=nickname, region_code=region_code)
    except Exception as e:
        return alert_response(e, action="update_profile", ctx=ctx)
    return JSONResponse(content={"user": profile.model_dump(mode="json")})


@router.post("/refresh")
async def post_refresh(ctx: AppContext = Depends(get_ctx)) -> Response:
    try:
        await catalog_service.refresh(ctx)
    except Exception as e:
        return alert_response(e, action="refresh", ctx=ctx)
    return JSONResponse(content={"requests": len(ctx.catalog.requests)})


# -- marketplace actions ------------------------------------------------------


@router.post("/dogs")
async def post_dog(
    *,
    name: str = Form(...),
    breed: str = Form(...),
    size: DogSize = Form(default=DogSize.S),
    notes: str | None = Form(default=None),
    photo: UploadFile | None = File(default=None),
    ctx: AppContext = Depends(get_ctx),
) -> Response:
    try:
        upload = None
        if photo is not None and photo.filename:
            upload = (photo.filename, await photo.read())
        dog = await dog_service.register_dog(ctx, name=name, breed=breed, size=size, notes=notes, photo=upload)
    except Exception as e:
        return alert_response(e, action="register_dog", ctx=ctx)
    return JSONResponse(status_code=status.HTTP_201_CREATED, content={"dog": dog.model_dump(mode="json")})


@router.post("/requests")
async def post_request(
    *,
    dog_id: str = Form(...),
    scheduled_at: datetime = Form(...),
    duration: int = Form(...),
    reward: int = Form(...),
    region: str | None = Form(default=None),
    ctx: AppContext = Depends(get_ctx),
) -> Response:
    try:
        walk = await walk_service.create_request(
            ctx, dog_id=dog_id, scheduled_at=scheduled_at, duration=duration, reward=reward, region=region
        )
    except Exception as e:
        return alert_response(e, action="create_request", ctx=ctx)
    return JSONResponse(status_code=status.HTTP_201_CREATED, content={"request": walk.model_dump(mode="json")})


@router.post("/requests/{request_id}/apply")
async def post_apply(request_id: str, ctx: AppContext = Depends(get_ctx)) -> Response:
    try:
        application = await walk_service.apply_to_request(ctx, request_id=request_id)
    except Exception as e:
        return alert_response(e, action="apply", ctx=ctx)
    return JSONResponse(
        status_code=status.HTTP_201_CREATED, content={"application": application.model_dump(mode="json")}
    )


@router.post("/applications/{application_id}/accept")
async def post_accept(application_id: str, ctx: AppContext = Depends(get_ctx)) -> Response:
    try:
        walk = await walk_service.accept_application(ctx, application_id=application_id)
    except Exception as e:
        return alert_response(e, action="accept", ctx=ctx)
    return JSONResponse(content={"request": walk.model_dump(mode="json") if walk else None})


@router.post("/requests/{request_id}/complete")
async def post_complete(request_id: str, ctx: AppContext = Depends(get_ctx)) -> Response:
    try:
        walk = await walk_service.complete_request(ctx, request_id=request_id)
    except Exception as e:
        return alert_response(e, action="complete", ctx=ctx)
    return JSONResponse(content={"request": walk.model_dump(mode="json") if walk else None})


@router.post("/chat/{request_id}/messages")
async def post_message(
    request_id: str,
    *,
    content: str = Form(...),
    ctx: AppContext = Depends(get_ctx),
) -> Response:
    try:
        message = await chat_service.send_message(ctx, request_id=request_id, content=content)
    except chat_service.ChatSendError as e:
        return alert_response(e, action="send_message", ctx=ctx, content=e.content)
    except Exception as e:
        return alert_response(e, action="send_message", ctx=ctx, content=content)
    return JSONResponse(status_code=status.HTTP_201_CREATED, content={"message": message.model_dump(mode="json")})


@router.delete("/chat/{request_id}")
async def delete_chat(request_id: str, ctx: AppContext = Depends(get_ctx)) -> Response:
    await chat_service.close_channel(ctx, request_id=request_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
