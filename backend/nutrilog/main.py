"""Nutrilog Server - Entry point.

Serves the tracker's JSON API and a live overview stream over HTTP.
Clients are constructed here from explicit configuration and handed to
the routes through app.state.
"""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import date
from typing import Any, Optional

import uvicorn
from pydantic import BaseModel, Field, ValidationError
from starlette.applications import Starlette
from starlette.middleware import Middleware
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.middleware.cors import CORSMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse, StreamingResponse
from starlette.routing import Route

from .config import AppConfig, load_config
from .core.errors import AuthError, InputValidationError, InvalidTransitionError
from .core.models import MacroDensity
from .core.navigation import Action, Screen
from .shell.auth import AuthClient
from .shell.firestore_gateway import FirestoreGateway
from .shell.ledger import SyncGateway
from .shell.session import SessionRegistry, TrackerSession


logger = logging.getLogger(__name__)


# ==================== Request Bodies ====================


class FoodForm(BaseModel):
    """Add-entry form: weight plus macros per 100 g."""

    name: str = ""
    grams: float = 100
    proteins: float = Field(default=20, ge=0, le=100)
    fats: float = Field(default=5, ge=0, le=100)
    carbs: float = Field(default=0, ge=0, le=100)

    def density(self) -> MacroDensity:
        return MacroDensity(proteins=self.proteins, fats=self.fats, carbs=self.carbs)


class GoalForm(BaseModel):
    """Partial update of the goal targets."""

    proteins: Optional[float] = None
    fats: Optional[float] = None
    carbs: Optional[float] = None


async def _read_json(request: Request) -> dict[str, Any]:
    body = await request.body()
    if not body:
        return {}
    try:
        data = await request.json()
    except ValueError:
        raise InputValidationError("Request body must be valid JSON") from None
    if not isinstance(data, dict):
        raise InputValidationError("Request body must be a JSON object")
    return data


def _session(request: Request) -> TrackerSession:
    return request.app.state.sessions.get(request.state.user_id)


def _session_view(session: TrackerSession) -> dict[str, Any]:
    view: dict[str, Any] = {
        "screen": session.screen.value,
        "selected_date": session.selected_date.isoformat(),
        "overview": session.overview().model_dump(mode="json"),
    }
    if session.screen is Screen.SETTINGS:
        view["goals_draft"] = session.goal_model.goals.model_dump(mode="json")
    elif session.screen is Screen.ADD_ENTRY:
        view["entry_form"] = FoodForm().model_dump()
    return view


# ==================== Route Handlers ====================


async def health_check(request: Request) -> JSONResponse:
    """Health check endpoint."""
    return JSONResponse({"status": "healthy", "service": "nutrilog"})


async def register_user(request: Request) -> JSONResponse:
    """Register a new anonymous user and return their API key."""
    try:
        api_key, _ = request.app.state.auth_client.register_user()
    except AuthError as e:
        logger.error("Registration failed: %s", str(e))
        return JSONResponse({"error": "Registration failed."}, status_code=500)

    return JSONResponse({
        "api_key": api_key,
        "message": "Registration successful! Save your API key - it won't be shown again.",
    })


async def validate_key(request: Request) -> JSONResponse:
    """Validate an API key."""
    try:
        body = await _read_json(request)
    except InputValidationError:
        return JSONResponse({"valid": False, "error": "Invalid request body"})

    api_key = body.get("api_key")
    if not api_key:
        return JSONResponse({"valid": False, "error": "API key required"})

    user_id = request.app.state.auth_client.validate_api_key(api_key)
    return JSONResponse({"valid": user_id is not None})


async def get_session(request: Request) -> JSONResponse:
    """Current screen, selected day and what that screen shows."""
    return JSONResponse(_session_view(_session(request)))


async def select_date(request: Request) -> JSONResponse:
    """Pick the day shown on the overview."""
    body = await _read_json(request)
    try:
        log_date = date.fromisoformat(str(body.get("date", "")))
    except ValueError:
        return JSONResponse({"error": "Invalid date format. Use YYYY-MM-DD."}, status_code=400)

    session = _session(request)
    session.select_date(log_date)
    return JSONResponse(_session_view(session))


async def navigate(request: Request) -> JSONResponse:
    """Open the add or settings screen, or go back to the overview."""
    body = await _read_json(request)
    try:
        action = Action(body.get("action"))
    except ValueError:
        return JSONResponse({"error": "Unknown action."}, status_code=400)

    session = _session(request)
    session.navigate(action)
    return JSONResponse(_session_view(session))


async def close_session(request: Request) -> JSONResponse:
    """Release the user's live listeners (the client view went away)."""
    request.app.state.sessions.close(request.state.user_id)
    return JSONResponse({"closed": True})


async def overview_stream(request: Request) -> StreamingResponse:
    """Server-sent events: a fresh overview whenever the day or goals change."""
    session = _session(request)

    async def events() -> AsyncIterator[str]:
        async for overview in session.changes.updates():
            if await request.is_disconnected():
                break
            yield f"data: {overview.model_dump_json()}\n\n"

    return StreamingResponse(events(), media_type="text/event-stream")


async def preview_food(request: Request) -> JSONResponse:
    """Macros and calories the add form would store."""
    form = FoodForm(**await _read_json(request))
    session = _session(request)
    amounts = session.ledger.preview(form.grams, form.density())
    return JSONResponse(amounts.model_dump())


async def add_food(request: Request) -> JSONResponse:
    """Save the add form on the selected day."""
    form = FoodForm(**await _read_json(request))
    session = _session(request)

    entry = session.save_entry(form.name, form.grams, form.density())
    if entry is None:
        return JSONResponse({"error": "Failed to save food. Please try again."}, status_code=502)

    return JSONResponse(
        {"entry": entry.model_dump(mode="json"), "screen": session.screen.value},
        status_code=201,
    )


async def delete_food(request: Request) -> JSONResponse:
    """Delete an entry by ID."""
    food_id = request.path_params["food_id"]
    if not _session(request).delete_entry(food_id):
        return JSONResponse({"error": "Failed to delete food. Please try again."}, status_code=502)
    return JSONResponse({"success": True})


async def repeat_food(request: Request) -> JSONResponse:
    """Log an entry of the selected day again for today."""
    food_id = request.path_params["food_id"]
    session = _session(request)

    original = session.find_entry(food_id)
    if original is None:
        return JSONResponse({"error": "Entry not found."}, status_code=404)

    entry = session.repeat_entry(original)
    if entry is None:
        return JSONResponse({"error": "Failed to repeat food. Please try again."}, status_code=502)
    return JSONResponse({"entry": entry.model_dump(mode="json")}, status_code=201)


async def get_goals(request: Request) -> JSONResponse:
    """Goals draft of the settings screen."""
    return JSONResponse(_session(request).goal_model.goals.model_dump(mode="json"))


async def update_goals(request: Request) -> JSONResponse:
    """Change draft targets; calories are re-derived."""
    form = GoalForm(**await _read_json(request))
    goals = _session(request).update_goals(proteins=form.proteins, fats=form.fats, carbs=form.carbs)
    return JSONResponse(goals.model_dump(mode="json"))


async def save_goals(request: Request) -> JSONResponse:
    """Store the goals draft and return to the overview."""
    session = _session(request)
    if not session.save_goals():
        return JSONResponse({"error": "Failed to save goals. Please try again."}, status_code=502)
    return JSONResponse({
        "goals": session.goal_model.goals.model_dump(mode="json"),
        "screen": session.screen.value,
    })


# ==================== Error Handlers ====================


async def input_error(request: Request, exc: Exception) -> JSONResponse:
    logger.warning("Rejected input on %s: %s", request.url.path, str(exc))
    return JSONResponse({"error": str(exc)}, status_code=400)


async def transition_error(request: Request, exc: Exception) -> JSONResponse:
    return JSONResponse({"error": str(exc)}, status_code=409)


# ==================== Auth Middleware ====================


class AuthMiddleware(BaseHTTPMiddleware):
    """Resolve the API key in the Authorization header to a user ID.

    Nothing under /api is reachable until a user is signed in.
    """

    async def dispatch(self, request: Request, call_next):
        if not request.url.path.startswith("/api"):
            return await call_next(request)

        auth_header = request.headers.get("Authorization", "")
        user_id = None
        if auth_header.startswith("Bearer "):
            api_key = auth_header.replace("Bearer ", "")
            user_id = request.app.state.auth_client.validate_api_key(api_key)

        if user_id is None:
            return JSONResponse(
                {"status": "loading", "error": "Not signed in."}, status_code=401
            )

        request.state.user_id = user_id
        logger.debug("Authenticated user: %s", user_id[:8])
        return await call_next(request)


# ==================== Create ASGI App ====================


def create_app(
    config: AppConfig | None = None,
    gateway: SyncGateway | None = None,
    auth_client: AuthClient | None = None,
) -> Starlette:
    """Create the Starlette application.

    Args:
        config: Settings (read from the environment when omitted)
        gateway: Sync gateway (Firestore when omitted)
        auth_client: Identity provider (Firestore-backed when omitted)
    """
    config = config or load_config()
    if gateway is None:
        firestore_gateway = FirestoreGateway(config.firestore)
        gateway = firestore_gateway
        if auth_client is None:
            auth_client = AuthClient(firestore_gateway.client, config.firestore.app_id)
    if auth_client is None:
        raise ValueError("auth_client is required when a custom gateway is given")

    sessions = SessionRegistry(gateway)

    @asynccontextmanager
    async def lifespan(app: Starlette) -> AsyncIterator[None]:
        yield
        sessions.close_all()

    routes = [
        Route("/health", health_check, methods=["GET"]),
        Route("/auth/register", register_user, methods=["POST"]),
        Route("/auth/validate", validate_key, methods=["POST"]),
        Route("/api/session", get_session, methods=["GET"]),
        Route("/api/session/date", select_date, methods=["POST"]),
        Route("/api/session/navigate", navigate, methods=["POST"]),
        Route("/api/session/close", close_session, methods=["POST"]),
        Route("/api/overview/stream", overview_stream, methods=["GET"]),
        Route("/api/foods/preview", preview_food, methods=["POST"]),
        Route("/api/foods", add_food, methods=["POST"]),
        Route("/api/foods/{food_id}", delete_food, methods=["DELETE"]),
        Route("/api/foods/{food_id}/repeat", repeat_food, methods=["POST"]),
        Route("/api/goals", get_goals, methods=["GET"]),
        Route("/api/goals", update_goals, methods=["PATCH"]),
        Route("/api/goals", save_goals, methods=["POST"]),
    ]

    app = Starlette(
        routes=routes,
        middleware=[
            Middleware(
                CORSMiddleware,
                allow_origins=config.allowed_origins,
                allow_methods=["GET", "POST", "PATCH", "DELETE", "OPTIONS"],
                allow_headers=["*"],
            ),
            Middleware(AuthMiddleware),
        ],
        exception_handlers={
            InputValidationError: input_error,
            ValidationError: input_error,
            InvalidTransitionError: transition_error,
        },
        lifespan=lifespan,
    )
    app.state.config = config
    app.state.gateway = gateway
    app.state.auth_client = auth_client
    app.state.sessions = sessions

    return app


def main() -> None:
    """Run the server."""
    config = load_config()
    logging.basicConfig(
        level=config.log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    logger.info("Starting Nutrilog server on %s:%d", config.host, config.port)

    uvicorn.run(create_app(config), host=config.host, port=config.port)


if __name__ == "__main__":
    main()
