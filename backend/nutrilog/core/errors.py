"""Error Taxonomy - Exceptions shared by core and shell."""


class NutrilogError(Exception):
    """Base class for all application errors."""


class InputValidationError(NutrilogError, ValueError):
    """User input rejected before any gateway call (empty name, bad weight)."""


class GatewayWriteError(NutrilogError):
    """A create, delete or write against the document store failed."""


class AuthError(NutrilogError):
    """Sign-in or registration with the identity provider failed."""


class InvalidTransitionError(NutrilogError):
    """A navigation action is not allowed from the current screen."""
