"""Application configuration, read once from the environment."""

import os
from dataclasses import dataclass, field


@dataclass
class FirestoreConfig:
    """Configuration for the Firestore client.

    Attributes:
        project_id: GCP project ID (None for default)
        database: Firestore database name (None for default database)
        app_id: Namespace for this app's documents under artifacts/
    """

    project_id: str | None = None
    database: str | None = None
    app_id: str = "default-bju-app"


@dataclass
class AppConfig:
    """Top-level settings passed down to everything that needs them."""

    firestore: FirestoreConfig = field(default_factory=FirestoreConfig)
    host: str = "0.0.0.0"
    port: int = 8080
    allowed_origins: list[str] = field(default_factory=lambda: ["http://localhost:5173"])
    log_level: str = "INFO"


def load_config(environ: dict[str, str] | None = None) -> AppConfig:
    """Build configuration from environment variables.

    Args:
        environ: Mapping to read from (defaults to os.environ)

    Returns:
        AppConfig with defaults for anything unset
    """
    env = os.environ if environ is None else environ

    origins = [
        origin.strip()
        for origin in env.get("NUTRILOG_ALLOWED_ORIGINS", "http://localhost:5173").split(",")
        if origin.strip()
    ]

    return AppConfig(
        firestore=FirestoreConfig(
            project_id=env.get("GOOGLE_CLOUD_PROJECT") or None,
            database=env.get("FIRESTORE_DATABASE") or None,
            app_id=env.get("NUTRILOG_APP_ID", "default-bju-app"),
        ),
        host=env.get("HOST", "0.0.0.0"),
        port=int(env.get("PORT", 8080)),
        allowed_origins=origins,
        log_level=env.get("LOG_LEVEL", "INFO").upper(),
    )
