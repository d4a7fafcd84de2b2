#!/usr/bin/env python3
"""Create or update the accounting collections in PocketBase."""

import argparse
import asyncio

from src.core.config import settings
from src.core.logging import configure_logfire
from src.core.schema import COLLECTIONS, sync_schema


async def main(pocketbase_url: str | None) -> None:
    admin_email = settings.require_credential("pocketbase_admin_email", "PocketBase Admin Email")
    admin_password = settings.require_credential("pocketbase_admin_password", "PocketBase Admin Password")

    await sync_schema(
        pocketbase_url=pocketbase_url,
        admin_email=admin_email,
        admin_password=admin_password,
    )
    print(f"Synced {len(COLLECTIONS)} collections: {', '.join(COLLECTIONS)}")  # noqa: T201


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--url", help="PocketBase URL (defaults to POCKETBASE_URL)")
    args = parser.parse_args()

    configure_logfire()
    asyncio.run(main(args.url))
