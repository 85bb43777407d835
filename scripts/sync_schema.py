#!/usr/bin/env python3
"""Create or update the walkmate collections on the configured PocketBase."""

import asyncio
import logging

from walkmate.core.config import settings
from walkmate.core.schema import sync_schema


logging.basicConfig(level=logging.INFO)


async def main() -> None:
    admin_email = settings.require_credential("pocketbase_admin_email", "PocketBase Admin Email")
    admin_password = settings.require_credential("pocketbase_admin_password", "PocketBase Admin Password")

    await sync_schema(
        pocketbase_url=settings.pocketbase_url,
        admin_email=admin_email,
        admin_password=admin_password,
    )


if __name__ == "__main__":
    asyncio.run(main())
