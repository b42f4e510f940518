"""
Create a User

Seeds a user account and prints its API token, for local testing of the
order endpoints and the checkout client.
Run from project root: python scripts/create_user.py "Asha Rao" asha@example.com
"""

import argparse
import asyncio
import os
import secrets
import sys

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from quickbite.database import async_session_maker, init_db, engine
from quickbite.models import User


async def create_user(name: str, email: str) -> User:
    await init_db()
    async with async_session_maker() as session:
        user = User(name=name, email=email.lower(), api_token=secrets.token_urlsafe(32))
        session.add(user)
        await session.commit()
        await session.refresh(user)
    await engine.dispose()
    return user


def main() -> None:
    parser = argparse.ArgumentParser(description="Create a QuickBite user")
    parser.add_argument("name")
    parser.add_argument("email")
    args = parser.parse_args()

    user = asyncio.run(create_user(args.name, args.email))
    print(f"✅ Created user #{user.id} ({user.email})")
    print(f"   API token: {user.api_token}")


if __name__ == "__main__":
    main()
