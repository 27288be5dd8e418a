"""Repository for user accounts."""
import logging
from typing import Optional

from noteflow.exceptions import UserConflictError
from noteflow.models.schema import User, generate_id, utc_now
from noteflow.storage.collection_store import CollectionStore

logger = logging.getLogger(__name__)


class UserRepository:
    """Repository for users. Users are created once and never modified."""

    def __init__(self, store: CollectionStore[User]):
        self.store = store

    def find_by_email(self, email: str) -> Optional[User]:
        """Get a user by email, ignoring case."""
        lowered = email.strip().lower()
        for user in self.store.read_all():
            if user.email.lower() == lowered:
                return user
        return None

    def find_by_id(self, id: str) -> Optional[User]:
        """Get a user by ID."""
        for user in self.store.read_all():
            if user.id == id:
                return user
        return None

    def create(self, email: str, password_hash: str, name: str) -> User:
        """Register a user. The email is stored lower-cased.

        Raises:
            UserConflictError: If the email is already registered.
        """
        users = self.store.read_all()
        lowered = email.strip().lower()
        if any(user.email.lower() == lowered for user in users):
            raise UserConflictError(lowered)

        now = utc_now()
        user = User(
            id=generate_id("user"),
            email=lowered,
            password=password_hash,
            name=name,
            created_at=now,
            updated_at=now,
        )
        users.append(user)
        self.store.write_all(users)
        logger.info(f"Created user {user.id}")
        return user
