"""Dog service for registering an owner's dogs with an optional photo."""

import logging

from walkmate.core.config import constants
from walkmate.core.context import AppContext
from walkmate.core.logging import span
from walkmate.domain.create_models import DogCreate, parse_input
from walkmate.domain.dog import Dog, DogSize
from walkmate.domain.user import UserRole
from walkmate.services import catalog_service


logger = logging.getLogger(__name__)


async def register_dog(
    ctx: AppContext,
    *,
    name: str,
    breed: str,
    size: DogSize | str = DogSize.S,
    notes: str | None = None,
    photo: tuple[str, bytes] | None = None,
) -> Dog:
    """Register a dog for the signed-in owner.

    Args:
        ctx: Application context
        name: Dog name
        breed: Breed label
        size: Size class
        notes: Optional temperament and care notes
        photo: Optional (filename, content) pair, uploaded with the record

    Returns:
        The created dog, with image_url resolved when a photo was stored

    Raises:
        PermissionError: If the caller is not a signed-in owner
        ValueError: If name or breed is blank, or the photo is too large
    """
    with span("dog_service.register_dog"):
        user = ctx.current_user
        if user is None or user.role != UserRole.OWNER:
            msg = "Only owners can register dogs"
            raise PermissionError(msg)

        form = parse_input(DogCreate, name=name, breed=breed, size=size, notes=notes)

        files = None
        if photo is not None:
            filename, content = photo
            if len(content) > constants.MAX_UPLOAD_BYTES:
                msg = f"Photo is too large (max {constants.MAX_UPLOAD_BYTES // (1024 * 1024)} MB)"
                raise ValueError(msg)
            files = {"image": (filename, content)}

        record = await ctx.backend.create_record(
            collection=catalog_service.DOGS,
            data={
                "owner_id": user.id,
                "name": form.name,
                "breed": form.breed,
                "size": str(form.size),
                "notes": form.notes or "",
            },
            files=files,
        )
        dog = catalog_service.dog_from_record(ctx, record)

        logger.info("Registered dog", extra={"dog_id": dog.id, "owner_id": user.id, "has_photo": files is not None})

        await catalog_service.fetch_dogs(ctx, owner_id=user.id)
        return dog
