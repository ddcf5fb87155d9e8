"""Create an admin user: python -m salon.seed admin@example.com 'password' --name Rachell"""
import argparse
import asyncio
import logging

from salon.core.db import async_session_maker
from salon.models.user import UserCreate, UserRole
from salon.services.auth_service import create_user, get_user_by_email

logger = logging.getLogger(__name__)


async def ensure_admin(email: str, password: str, full_name: str | None = None) -> bool:
    """Returns True if the user was created, False if it already existed."""
    async with async_session_maker() as session:
        if await get_user_by_email(session, email):
            logger.info("User %s already exists", email)
            return False
        await create_user(
            session, UserCreate(email=email, password=password, full_name=full_name, role=UserRole.ADMIN)
        )
        await session.commit()
        logger.info("Admin user %s created", email)
        return True


def main() -> None:
    logging.basicConfig(level=logging.INFO)
    parser = argparse.ArgumentParser(description="Create a salon admin user")
    parser.add_argument("email")
    parser.add_argument("password")
    parser.add_argument("--name", default=None)
    args = parser.parse_args()
    asyncio.run(ensure_admin(args.email, args.password, args.name))


if __name__ == "__main__":
    main()
