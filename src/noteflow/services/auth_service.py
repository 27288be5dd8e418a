"""Service layer for sign-up and sign-in."""

import logging
from typing import Any, Dict, Optional

from passlib.context import CryptContext

from noteflow.config import USERS_FILE, config
from noteflow.exceptions import AuthenticationError
from noteflow.models.requests import SigninRequest, SignupRequest, parse_request
from noteflow.models.schema import User
from noteflow.services.record_service import RequestData
from noteflow.storage.collection_store import CollectionStore
from noteflow.storage.user_repository import UserRepository

logger = logging.getLogger(__name__)

pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")


def password_matches(password: str, password_hash: str) -> bool:
    """Check a password against a stored hash; unrecognised hashes never match."""
    try:
        return pwd_context.verify(password, password_hash)
    except (TypeError, ValueError):
        logger.warning("Stored password hash is not in a recognised format")
        return False


class AuthService:
    """Registers users and checks their credentials."""

    def __init__(self, repository: Optional[UserRepository] = None):
        if repository is None:
            repository = UserRepository(
                CollectionStore(config.get_collection_path(USERS_FILE), User, "user")
            )
        self.repository = repository

    def signup(self, data: RequestData) -> Dict[str, Any]:
        """Register a new user.

        Returns:
            The stored user without its password hash.

        Raises:
            ValidationError: If a field is missing or malformed, or the
                passwords do not match.
            UserConflictError: If the email is already registered.
        """
        request = parse_request(SignupRequest, data)
        user = self.repository.create(
            email=request.email,
            password_hash=pwd_context.hash(request.password),
            name=request.name.strip(),
        )
        return user.public()

    def signin(self, data: RequestData) -> Dict[str, Any]:
        """Check credentials.

        Returns:
            The matching user without its password hash.

        Raises:
            AuthenticationError: On an unknown email or a wrong password,
                without saying which.
        """
        request = parse_request(SigninRequest, data)
        user = self.repository.find_by_email(request.email)
        if user is None or not password_matches(request.password, user.password):
            logger.info("Rejected sign-in attempt")
            raise AuthenticationError()
        return user.public()
