"""Screen Navigation - The three-screen state machine.

overview <-> add-entry, overview <-> settings. Every transition is
triggered by a user action; nothing moves on its own.
"""

from enum import Enum

from .errors import InvalidTransitionError


class Screen(str, Enum):
    OVERVIEW = "overview"
    ADD_ENTRY = "add-entry"
    SETTINGS = "settings"


class Action(str, Enum):
    OPEN_ADD = "open-add"
    OPEN_SETTINGS = "open-settings"
    BACK = "back"
    SAVE = "save"


TRANSITIONS: dict[tuple[Screen, Action], Screen] = {
    (Screen.OVERVIEW, Action.OPEN_ADD): Screen.ADD_ENTRY,
    (Screen.OVERVIEW, Action.OPEN_SETTINGS): Screen.SETTINGS,
    (Screen.ADD_ENTRY, Action.BACK): Screen.OVERVIEW,
    (Screen.ADD_ENTRY, Action.SAVE): Screen.OVERVIEW,
    (Screen.SETTINGS, Action.BACK): Screen.OVERVIEW,
    (Screen.SETTINGS, Action.SAVE): Screen.OVERVIEW,
}


def next_screen(current: Screen, action: Action) -> Screen:
    """Return the screen an action leads to.

    Raises:
        InvalidTransitionError: If the action is not allowed on this screen
    """
    try:
        return TRANSITIONS[(current, action)]
    except KeyError:
        raise InvalidTransitionError(
            f"Cannot {action.value} from the {current.value} screen"
        ) from None
