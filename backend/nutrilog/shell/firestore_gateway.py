"""Firestore Gateway - Live persistence for food entries and goals.

This module handles all database I/O for the ledger and goals.
All I/O is contained here; business logic is in the core module.
"""

import logging
from datetime import date, datetime, timezone
from typing import Any

from google.api_core.exceptions import GoogleAPICallError, RetryError
from google.cloud import firestore
from pydantic import ValidationError

from ..config import FirestoreConfig
from ..core.errors import GatewayWriteError
from ..core.goals import DEFAULT_GOALS, goals_from_document, goals_to_document
from ..core.macros import sort_newest_first
from ..core.models import FoodEntry, GoalSettings
from .subscriptions import Subscription


logger = logging.getLogger(__name__)

GOALS_DOCUMENT = "dailyGoals"
_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
_WRITE_ERRORS = (GoogleAPICallError, RetryError)


class FirestoreGateway:
    """Subscribe/push access to a user's entries and goals in Firestore.

    Document structure per user:
        artifacts/{app_id}/users/{user_id}/
            settings/dailyGoals: { proteins, fats, carbs, calories }
            foods/{auto_id}: { name, grams, proteins, fats, carbs,
                               calories, date, createdAt }
    """

    def __init__(self, config: FirestoreConfig | None = None) -> None:
        """Initialize the gateway.

        Args:
            config: Firestore configuration
        """
        self.config = config or FirestoreConfig()
        self._client: firestore.Client | None = None

    @property
    def client(self) -> firestore.Client:
        """Lazy initialization of Firestore client."""
        if self._client is None:
            kwargs: dict[str, Any] = {}
            if self.config.project_id:
                kwargs["project"] = self.config.project_id
            if self.config.database:
                kwargs["database"] = self.config.database
            self._client = firestore.Client(**kwargs)
        return self._client

    def user_ref(self, user_id: str) -> firestore.DocumentReference:
        """Get reference to the user's root document."""
        return (
            self.client.collection("artifacts")
            .document(self.config.app_id)
            .collection("users")
            .document(user_id)
        )

    def _goals_ref(self, user_id: str) -> firestore.DocumentReference:
        """Get reference to the goals document."""
        return self.user_ref(user_id).collection("settings").document(GOALS_DOCUMENT)

    def _foods_ref(self, user_id: str) -> firestore.CollectionReference:
        """Get reference to the user's food entries."""
        return self.user_ref(user_id).collection("foods")

    # ==================== Goal Operations ====================

    def subscribe_goals(self, user_id: str) -> Subscription[GoalSettings]:
        """Listen to the user's goals.

        Pushes the current value right away and again on every change.
        Defaults are pushed while no goals document exists.

        Args:
            user_id: The user's ID

        Returns:
            Subscription the caller must release
        """
        logger.debug("Subscribing to goals for user: %s", user_id[:8])
        subscription: Subscription[GoalSettings] = Subscription(f"goals:{user_id[:8]}")

        def on_snapshot(snapshots: list, changes: list, read_time: Any) -> None:
            data = None
            if snapshots and snapshots[0].exists:
                data = snapshots[0].to_dict()
            subscription.publish(goals_from_document(data) or DEFAULT_GOALS)

        subscription.bind(self._goals_ref(user_id).on_snapshot(on_snapshot))
        return subscription

    def read_goals(self, user_id: str) -> GoalSettings | None:
        """Fetch the goals once.

        Args:
            user_id: The user's ID

        Returns:
            GoalSettings if stored, None otherwise
        """
        logger.debug("Fetching goals for user: %s", user_id[:8])
        try:
            doc = self._goals_ref(user_id).get()
            if not doc.exists:
                return None
            return goals_from_document(doc.to_dict())
        except Exception as e:
            logger.error("Failed to fetch goals: %s", str(e))
            return None

    def write_goals(self, user_id: str, goals: GoalSettings) -> None:
        """Overwrite the goals document.

        Args:
            user_id: The user's ID
            goals: Goals to store; calories are written as derived

        Raises:
            GatewayWriteError: If the write fails
        """
        logger.info("Saving goals for user: %s", user_id[:8])
        try:
            self._goals_ref(user_id).set(goals_to_document(goals))
        except _WRITE_ERRORS as e:
            raise GatewayWriteError(f"Failed to save goals: {e}") from e

    # ==================== Food Operations ====================

    def subscribe_foods(self, user_id: str, log_date: date) -> Subscription[list[FoodEntry]]:
        """Listen to the entries of one calendar day, newest first.

        Args:
            user_id: The user's ID
            log_date: Day to watch (matched exactly on the date string)

        Returns:
            Subscription the caller must release
        """
        date_str = log_date.isoformat()
        logger.debug("Subscribing to foods for %s on %s", user_id[:8], date_str)
        subscription: Subscription[list[FoodEntry]] = Subscription(
            f"foods:{user_id[:8]}:{date_str}"
        )

        def on_snapshot(snapshots: list, changes: list, read_time: Any) -> None:
            entries = [_entry_from_snapshot(doc) for doc in snapshots]
            subscription.publish(sort_newest_first(e for e in entries if e is not None))

        query = self._foods_ref(user_id).where("date", "==", date_str)
        subscription.bind(query.on_snapshot(on_snapshot))
        return subscription

    def create_food(self, user_id: str, entry: FoodEntry) -> str:
        """Store a new entry and return its generated ID.

        Args:
            user_id: The user's ID
            entry: The entry to store (its id is ignored)

        Returns:
            The document ID assigned by Firestore

        Raises:
            GatewayWriteError: If the write fails
        """
        logger.info("Adding food for %s on %s: %s", user_id[:8], entry.date, entry.name)
        try:
            _, doc_ref = self._foods_ref(user_id).add(_entry_to_document(entry))
        except _WRITE_ERRORS as e:
            raise GatewayWriteError(f"Failed to add food: {e}") from e
        return doc_ref.id

    def delete_food(self, user_id: str, food_id: str) -> None:
        """Delete an entry. Deleting a missing entry succeeds silently.

        Raises:
            GatewayWriteError: If the delete fails
        """
        logger.info("Deleting food for %s: %s", user_id[:8], food_id)
        try:
            self._foods_ref(user_id).document(food_id).delete()
        except _WRITE_ERRORS as e:
            raise GatewayWriteError(f"Failed to delete food: {e}") from e


def _entry_to_document(entry: FoodEntry) -> dict[str, Any]:
    return {
        "name": entry.name,
        "grams": entry.grams,
        "proteins": entry.proteins,
        "fats": entry.fats,
        "carbs": entry.carbs,
        "calories": entry.calories,
        "date": entry.date,
        "createdAt": entry.created_at,
    }


def _entry_from_snapshot(doc: Any) -> FoodEntry | None:
    data = doc.to_dict() or {}
    try:
        return FoodEntry(
            id=doc.id,
            name=data.get("name", ""),
            grams=data.get("grams", 0),
            proteins=data.get("proteins", 0),
            fats=data.get("fats", 0),
            carbs=data.get("carbs", 0),
            calories=data.get("calories", 0),
            date=data.get("date", ""),
            created_at=data.get("createdAt") or _EPOCH,
        )
    except ValidationError as e:
        logger.warning("Skipping malformed food %s: %s", doc.id, str(e))
        return None
