"""Session service: sign-up, login, logout and startup session restore."""

import asyncio
import logging

from walkmate.core.config import constants, settings
from walkmate.core.context import AppContext, SessionState
from walkmate.core.db_client import AuthenticationError, AuthSession
from walkmate.core.logging import span
from walkmate.domain.create_models import SignUpCreate, parse_input
from walkmate.domain.user import Profile, UserRole
from walkmate.services import catalog_service, chat_service, profile_service


logger = logging.getLogger(__name__)


def current_user(ctx: AppContext) -> Profile | None:
    """Profile of the signed-in user, or None when signed out."""
    return ctx.session.user


async def _remember(ctx: AppContext, auth: AuthSession, profile: Profile) -> None:
    ctx.session.user = profile
    ctx.session.email = auth.email or None
    ctx.session.awaiting_confirmation = False
    if ctx.cache is not None:
        await ctx.cache.set(constants.CACHE_KEY_SESSION_TOKEN, auth.token)
        await ctx.cache.set(constants.CACHE_KEY_SESSION_USER_ID, auth.user_id)


async def _forget(ctx: AppContext) -> None:
    if ctx.cache is not None:
        await ctx.cache.delete(constants.CACHE_KEY_SESSION_TOKEN)
        await ctx.cache.delete(constants.CACHE_KEY_SESSION_USER_ID)


async def _check_session(ctx: AppContext) -> Profile | None:
    token = ctx.backend.auth_token
    if not token and ctx.cache is not None:
        token = await ctx.cache.get(constants.CACHE_KEY_SESSION_TOKEN)
    if not token:
        return None

    try:
        auth = await ctx.backend.restore_auth(token=token)
    except AuthenticationError as e:
        logger.info("Persisted session rejected", extra={"error": str(e)})
        await _forget(ctx)
        return None

    profile = await profile_service.ensure_profile(
        ctx, user_id=auth.user_id, email=auth.email, nickname=auth.nickname or None, role=auth.role or None
    )
    await _remember(ctx, auth, profile)
    return profile


async def restore_session(ctx: AppContext, *, timeout: float | None = None) -> Profile | None:
    """Rehydrate the persisted session at startup and load the matching catalog.

    The loading flag always clears, even when the session check hangs past
    the timeout; a timed out or failed check leaves the viewer signed out.
    """
    timeout = settings.session_check_timeout_seconds if timeout is None else timeout

    with span("session_service.restore_session"):
        ctx.session.loading = True
        profile = None
        try:
            profile = await asyncio.wait_for(_check_session(ctx), timeout=timeout)
        except TimeoutError:
            logger.warning("Session check timed out, continuing signed out", extra={"timeout": timeout})
            ctx.session.user = None
        except Exception as e:
            logger.error("Session check failed, continuing signed out", extra={"error": str(e)})
            ctx.session.user = None
        finally:
            ctx.session.loading = False

        try:
            await catalog_service.refresh(ctx)
        except Exception as e:
            logger.error("Initial catalog load failed", extra={"error": str(e)})

        if profile is not None:
            logger.info("Session restored", extra={"user_id": profile.id, "role": str(profile.role)})
        return profile


async def login(ctx: AppContext, *, email: str, password: str) -> Profile:
    """Sign in and load the viewer's catalog.

    Raises:
        ValueError: If e-mail or password is blank
        AuthenticationError: If the identity provider rejects the credentials
            or the e-mail is still unconfirmed
    """
    with span("session_service.login"):
        email = email.strip().lower()
        if not email or not password:
            msg = "Enter your e-mail and password"
            raise ValueError(msg)

        auth = await ctx.backend.auth_with_password(email=email, password=password)
        if settings.require_verified_email and not auth.verified:
            ctx.backend.clear_auth()
            ctx.session.awaiting_confirmation = True
            msg = "Email not verified"
            raise AuthenticationError(msg)

        profile = await profile_service.ensure_profile(
            ctx,
            user_id=auth.user_id,
            email=auth.email or email,
            nickname=auth.nickname or None,
            role=auth.role or None,
        )
        await _remember(ctx, auth, profile)
        await catalog_service.refresh(ctx)

        logger.info("User logged in", extra={"user_id": profile.id, "role": str(profile.role)})
        return profile


async def sign_up(
    ctx: AppContext,
    *,
    email: str,
    password: str,
    nickname: str,
    role: UserRole | str,
) -> Profile | None:
    """Register an account with its profile and sign in.

    Returns None when the account waits for e-mail confirmation; the
    nickname and role are stored on the account and become the profile on
    the first sign-in.

    Raises:
        ValueError: If the form is invalid (checked before any remote call)
        AuthenticationError: If the e-mail is already registered or the
            identity provider rejects the sign-up
    """
    with span("session_service.sign_up"):
        form = parse_input(SignUpCreate, email=email, password=password, nickname=nickname, role=role)

        user_record = await ctx.backend.create_user(
            email=form.email,
            password=form.password,
            data={"nickname": form.nickname, "role": str(form.role)},
        )
        logger.info("Account created", extra={"user_id": user_record.get("id"), "role": str(form.role)})

        if settings.require_verified_email:
            ctx.session.awaiting_confirmation = True
            logger.info("Sign-up awaiting e-mail confirmation", extra={"user_id": user_record.get("id")})
            return None

        auth = await ctx.backend.auth_with_password(email=form.email, password=form.password)
        profile = await profile_service.upsert_profile(
            ctx,
            profile=Profile(
                id=auth.user_id,
                nickname=form.nickname,
                role=form.role,
                region_code=constants.DEFAULT_REGION_CODE,
                trust_score=constants.DEFAULT_TRUST_SCORE,
            ),
        )
        await _remember(ctx, auth, profile)
        await catalog_service.refresh(ctx)
        return profile


async def logout(ctx: AppContext) -> None:
    """Sign out: drop the token, close chats, and fall back to the public catalog."""
    with span("session_service.logout"):
        user = ctx.current_user
        await chat_service.close_all_channels(ctx)
        ctx.backend.clear_auth()
        await _forget(ctx)

        ctx.session = SessionState(loading=False)
        ctx.catalog.clear()
        await catalog_service.load_public_catalog(ctx)

        logger.info("User logged out", extra={"user_id": user.id if user else None})
