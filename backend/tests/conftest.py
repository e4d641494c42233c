"""Shared fixtures: an in-memory stand-in for the Firestore gateway."""

from datetime import date, datetime, timedelta, timezone

import pytest

from nutrilog.core.errors import GatewayWriteError
from nutrilog.core.goals import DEFAULT_GOALS
from nutrilog.core.macros import sort_newest_first
from nutrilog.core.models import FoodEntry, GoalSettings
from nutrilog.shell.subscriptions import Subscription


TODAY = date(2024, 3, 15)


class FakeWatch:
    """Records whether its listener was released."""

    def __init__(self) -> None:
        self.released = False

    def unsubscribe(self) -> None:
        self.released = True


class FakeGateway:
    """In-memory gateway that pushes snapshots synchronously."""

    def __init__(self) -> None:
        self.foods: dict[str, tuple[str, FoodEntry]] = {}
        self.goals: dict[str, GoalSettings] = {}
        self.fail_writes = False
        self.write_calls: list[str] = []
        self.watches: list[FakeWatch] = []
        self._food_subs: list[tuple[str, str, Subscription]] = []
        self._goal_subs: list[tuple[str, Subscription]] = []
        self._next_id = 0

    def subscribe_goals(self, user_id):
        subscription = Subscription(f"goals:{user_id}")
        subscription.bind(self._watch())
        self._goal_subs.append((user_id, subscription))
        subscription.publish(self.goals.get(user_id, DEFAULT_GOALS))
        return subscription

    def subscribe_foods(self, user_id, log_date):
        subscription = Subscription(f"foods:{user_id}:{log_date}")
        subscription.bind(self._watch())
        self._food_subs.append((user_id, log_date.isoformat(), subscription))
        subscription.publish(self._day(user_id, log_date.isoformat()))
        return subscription

    def create_food(self, user_id, entry):
        self.write_calls.append("create_food")
        if self.fail_writes:
            raise GatewayWriteError("permission denied")
        self._next_id += 1
        food_id = f"food-{self._next_id}"
        self.foods[food_id] = (user_id, entry.model_copy(update={"id": food_id}))
        self._push_foods()
        return food_id

    def delete_food(self, user_id, food_id):
        self.write_calls.append("delete_food")
        if self.fail_writes:
            raise GatewayWriteError("network unreachable")
        self.foods.pop(food_id, None)
        self._push_foods()

    def read_goals(self, user_id):
        return self.goals.get(user_id)

    def write_goals(self, user_id, goals):
        self.write_calls.append("write_goals")
        if self.fail_writes:
            raise GatewayWriteError("permission denied")
        self.goals[user_id] = goals
        for owner, subscription in self._goal_subs:
            if owner == user_id and subscription.active:
                subscription.publish(goals)

    def active_food_dates(self):
        return [day for _, day, sub in self._food_subs if sub.active]

    def _watch(self):
        watch = FakeWatch()
        self.watches.append(watch)
        return watch

    def _day(self, user_id, day):
        return sort_newest_first(
            entry for owner, entry in self.foods.values()
            if owner == user_id and entry.date == day
        )

    def _push_foods(self):
        for owner, day, subscription in self._food_subs:
            if subscription.active:
                subscription.publish(self._day(owner, day))


class SteppingClock:
    """UTC clock that advances one minute per call."""

    def __init__(self) -> None:
        self.current = datetime(2024, 3, 15, 8, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        self.current += timedelta(minutes=1)
        return self.current


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def clock():
    return SteppingClock()


@pytest.fixture
def today():
    return lambda: TODAY
