"""Authentication - API key identity for the tracker.

Issues API keys, hashes them into stable user IDs and checks them against
Firestore. Never stores plaintext keys.
"""

import hashlib
import logging
import secrets
from datetime import datetime, timezone

from google.cloud import firestore

from ..core.errors import AuthError


logger = logging.getLogger(__name__)

# API key prefix for identification
API_KEY_PREFIX = "nlg_"


def generate_api_key() -> str:
    """Generate a cryptographically secure API key.

    Returns:
        API key in format: nlg_<random_chars>
    """
    random_part = secrets.token_urlsafe(32)
    return f"{API_KEY_PREFIX}{random_part}"


def hash_api_key(api_key: str) -> str:
    """Hash an API key to create a user_id.

    Uses SHA256 and truncates to 32 chars for Firestore document ID.

    Args:
        api_key: The plaintext API key

    Returns:
        32-character hash to use as user_id
    """
    return hashlib.sha256(api_key.encode()).hexdigest()[:32]


def validate_api_key_format(api_key: str) -> bool:
    """Check if API key has valid format.

    Args:
        api_key: The API key to validate

    Returns:
        True if format is valid
    """
    if not api_key:
        return False
    if not api_key.startswith(API_KEY_PREFIX):
        return False
    if len(api_key) < 40:  # prefix + at least some random chars
        return False
    return True


class AuthClient:
    """Registers users and resolves API keys to user IDs."""

    def __init__(self, db: firestore.Client, app_id: str) -> None:
        """Initialize auth client.

        Args:
            db: Firestore client instance
            app_id: Namespace for this app's documents
        """
        self._db = db
        self._app_id = app_id

    def _get_user_ref(self, user_id: str) -> firestore.DocumentReference:
        """Get reference to user document."""
        return (
            self._db.collection("artifacts")
            .document(self._app_id)
            .collection("users")
            .document(user_id)
        )

    def register_user(self) -> tuple[str, str]:
        """Register a new anonymous user and generate their API key.

        Returns:
            Tuple of (api_key, user_id) - api_key is only returned once!

        Raises:
            AuthError: If the user record cannot be stored
        """
        api_key = generate_api_key()
        user_id = hash_api_key(api_key)

        try:
            self._get_user_ref(user_id).set({
                "api_key_hash": user_id,
                "created_at": datetime.now(timezone.utc),
            })
        except Exception as e:
            logger.error("Failed to register user: %s", str(e))
            raise AuthError("Registration failed") from e

        logger.info("User registered successfully: %s", user_id[:8])
        return api_key, user_id

    def validate_api_key(self, api_key: str) -> str | None:
        """Validate an API key and return the user_id if valid.

        Args:
            api_key: The API key to validate

        Returns:
            user_id if valid, None if invalid
        """
        if not validate_api_key_format(api_key):
            logger.warning("Invalid API key format")
            return None

        user_id = hash_api_key(api_key)
        if self.user_exists(user_id):
            logger.debug("API key validated for user: %s", user_id[:8])
            return user_id

        logger.warning("API key not found in database")
        return None

    def user_exists(self, user_id: str) -> bool:
        """Check if a user exists.

        Args:
            user_id: The user's ID

        Returns:
            True if user exists
        """
        try:
            return self._get_user_ref(user_id).get().exists
        except Exception as e:
            logger.error("Error checking user: %s", str(e))
            return False
