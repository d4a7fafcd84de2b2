#!/usr/bin/env python3
"""Compare every member balance of a family with its ledger and repair drift."""

import argparse
import asyncio
import sys

from src.core.logging import configure_logfire
from src.services import balance_service, member_service


async def main(family_id: str, *, repair: bool) -> int:
    members = await member_service.get_family_members(family_id=family_id)
    drifted = 0
    for member in members:
        result = await balance_service.reconcile_balance(member_id=member.id, repair=repair)
        if result.in_sync:
            continue
        drifted += 1
        action = "repaired" if result.repaired else "left as is"
        print(  # noqa: T201
            f"{member.nickname}: cached {result.cached_balance}, ledger {result.ledger_balance} ({action})"
        )

    print(f"{len(members)} members checked, {drifted} out of sync")  # noqa: T201
    return 1 if drifted and not repair else 0


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("family_id", help="Family to check")
    parser.add_argument("--dry-run", action="store_true", help="Report drift without writing balances")
    args = parser.parse_args()

    configure_logfire()
    sys.exit(asyncio.run(main(args.family_id, repair=not args.dry_run)))
