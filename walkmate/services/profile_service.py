"""Profile service for reading, synthesizing and self-editing user profiles."""

import logging

from walkmate.core.config import constants
from walkmate.core.context import AppContext
from walkmate.core.db_client import RecordNotFoundError
from walkmate.core.errors import is_missing_profile_error
from walkmate.core.logging import span
from walkmate.domain.create_models import parse_input
from walkmate.domain.update_models import ProfileUpdate
from walkmate.domain.user import Profile, UserRole


logger = logging.getLogger(__name__)

PROFILES = "profiles"
FALLBACK_NICKNAME = "새회원"


async def get_profile(ctx: AppContext, *, user_id: str) -> Profile:
    """Get a profile by user ID.

    Raises:
        RecordNotFoundError: If no profile row exists for the user
    """
    record = await ctx.backend.get_record(collection=PROFILES, record_id=user_id)
    return Profile.from_record(record)


async def upsert_profile(ctx: AppContext, *, profile: Profile) -> Profile:
    """Write every profile field, creating the row if it doesn't exist yet."""
    with span("profile_service.upsert_profile"):
        data = {
            "nickname": profile.nickname,
            "role": str(profile.role),
            "region_code": profile.region_code,
            "trust_score": profile.trust_score,
        }
        try:
            record = await ctx.backend.update_record(collection=PROFILES, record_id=profile.id, data=data)
        except RecordNotFoundError:
            record = await ctx.backend.create_record(collection=PROFILES, data={"id": profile.id, **data})
            logger.info("Created profile", extra={"user_id": profile.id})
        return Profile.from_record(record)


def default_nickname(email: str | None) -> str:
    """Nickname for a synthesized profile, taken from the e-mail local part."""
    local_part = (email or "").split("@", 1)[0].strip()
    if len(local_part) < constants.MIN_NICKNAME_LENGTH:
        return FALLBACK_NICKNAME
    return local_part[: constants.MAX_NICKNAME_LENGTH]


def _signup_role(role: str | None) -> UserRole:
    try:
        return UserRole(role) if role else UserRole.OWNER
    except ValueError:
        return UserRole.OWNER


async def ensure_profile(
    ctx: AppContext,
    *,
    user_id: str,
    email: str | None = None,
    nickname: str | None = None,
    role: str | None = None,
) -> Profile:
    """Resolve a user's profile, building it after a partial or unconfirmed sign-up.

    A missing profile takes the nickname and role chosen at sign-up when the
    account carries them. Otherwise the nickname comes from the e-mail and
    the role is OWNER. Region is "unset" and trust the default score; the
    profile is persisted before returning.
    """
    with span("profile_service.ensure_profile"):
        try:
            return await get_profile(ctx, user_id=user_id)
        except Exception as e:
            if not is_missing_profile_error(e):
                raise
            logger.warning("Profile missing for authenticated user, synthesizing default", extra={"user_id": user_id})

        chosen = (nickname or "").strip()
        if not constants.MIN_NICKNAME_LENGTH <= len(chosen) <= constants.MAX_NICKNAME_LENGTH:
            chosen = default_nickname(email)

        profile = Profile(
            id=user_id,
            nickname=chosen,
            role=_signup_role(role),
            region_code=constants.DEFAULT_REGION_CODE,
            trust_score=constants.DEFAULT_TRUST_SCORE,
        )
        return await upsert_profile(ctx, profile=profile)


async def update_profile(
    ctx: AppContext,
    *,
    nickname: str | None = None,
    region_code: str | None = None,
) -> Profile:
    """Self-edit the signed-in user's nickname and region.

    Raises:
        PermissionError: If nobody is signed in
        ValueError: If the nickname is too short or nothing changes
    """
    with span("profile_service.update_profile"):
        user = ctx.current_user
        if user is None:
            msg = "Sign in to edit your profile"
            raise PermissionError(msg)

        update = parse_input(ProfileUpdate, nickname=nickname, region_code=region_code)
        data = update.model_dump(exclude_none=True)
        if not data:
            msg = "Nothing to update"
            raise ValueError(msg)

        record = await ctx.backend.update_record(collection=PROFILES, record_id=user.id, data=data)
        profile = Profile.from_record(record)
        ctx.session.user = profile

        logger.info("Updated profile", extra={"user_id": user.id, "fields": list(data.keys())})
        return profile
