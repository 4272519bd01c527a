"""
Create (or promote) an admin account.

Usage:
    python -m app.scripts.create_admin --email admin@example.com --password 'S3cret!pass'
"""
import argparse
import asyncio

from app.config import get_settings
from app.database import close_db, init_db
from app.services.auth_service import create_admin_user


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Create or promote an admin user")
    parser.add_argument("--email", required=True)
    parser.add_argument("--password", required=True)
    parser.add_argument("--first-name", default="System")
    parser.add_argument("--last-name", default="Admin")
    return parser.parse_args()


async def main() -> None:
    args = _parse_args()
    settings = get_settings()
    print(f"Using MongoDB URI: {settings.MONGODB_URI}")

    await init_db(settings)
    try:
        user, created = await create_admin_user(
            email=args.email,
            password=args.password,
            first_name=args.first_name,
            last_name=args.last_name,
            settings=settings,
        )
    finally:
        await close_db()

    if created:
        print(f"[OK] Created admin user '{user.email}' with id={user.id}")
    else:
        print(f"[SKIP] User '{user.email}' already exists with id={user.id} (role={user.role.value})")


if __name__ == "__main__":
    asyncio.run(main())
