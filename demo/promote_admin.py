#!/usr/bin/env python3
"""
One-time script to promote a registered user to Admin. Run on the server.

    DATABASE_URL=... python demo/promote_admin.py admin@example.com

The user must already have registered through POST /v1/users. The account is
given the Admin role and made active, so it can log in and manage everyone
else through the API.
"""
import asyncio
import sys

from impart.database import AsyncSessionLocal, engine
from impart.exceptions import RecordNotFoundError
from impart.services.user_service import promote_to_admin


async def promote(email: str) -> int:
    try:
        async with AsyncSessionLocal() as session:
            try:
                user = await promote_to_admin(session, email)
            except RecordNotFoundError as exc:
                print(f"Cannot promote {email}: {exc}")
                return 1
            await session.commit()
            print(f"Promoted user_id={user.id} ({user.email}) to {user.role_name}")
            return 0
    finally:
        await engine.dispose()


if __name__ == "__main__":
    if len(sys.argv) != 2:
        print("usage: promote_admin.py EMAIL")
        sys.exit(2)
    sys.exit(asyncio.run(promote(sys.argv[1])))
