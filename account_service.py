import hashlib
import logging

from db import UserRepository
from errors import InvalidCredentials, ValidationError
from session_store import UserSession

logger = logging.getLogger(__name__)


def hash_password(password: str) -> str:
    """Return the hex SHA-256 digest stored in place of ``password``."""
    return hashlib.sha256(password.encode("utf-8")).hexdigest()


class AccountService:
    """Register, authenticate and remove user accounts."""

    def __init__(self, user_repo: UserRepository) -> None:
        self.users = user_repo

    async def register(self, username: str, password: str) -> str:
        """Create an account and its empty stats row, returning the new user id."""
        username = username.strip()
        if not username or not password.strip():
            raise ValidationError("username and password are required")
        user_id = await self.users.create(username, hash_password(password))
        logger.info("registered user %s", username)
        return user_id

    async def login(self, username: str, password: str) -> UserSession:
        row = await self.users.fetch_by_credentials(
            username.strip(), hash_password(password)
        )
        if row is None:
            logger.warning("failed login for %s", username)
            raise InvalidCredentials("invalid username or password")
        user_id, name = row
        return UserSession(id=user_id, username=name)

    async def delete_account(self, user_id: str) -> None:
        await self.users.delete_cascade(user_id)
        logger.info("deleted account %s and all owned rows", user_id)
