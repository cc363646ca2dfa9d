"""
Application configuration.

Responsibilities:
- Load deployment-specific configuration
- Read environment variables
- Provide a typed, immutable config object

Non-responsibilities:
- No relay or playback logic
- No protocol constants (see spec.py)
- No runtime mutation
"""

from __future__ import annotations

import os
from dataclasses import dataclass

from spec import (
    PAIRING_SCHEME_DEFAULT,
    SESSION_IDLE_TTL_S_DEFAULT,
    VIEWER_OUTBOX_MAX_MEDIA_DEFAULT,
)


PRODUCER_POLICY_REPLACE = "replace"
PRODUCER_POLICY_REJECT = "reject"

_PRODUCER_POLICIES = (PRODUCER_POLICY_REPLACE, PRODUCER_POLICY_REJECT)


@dataclass(frozen=True)
class AppConfig:
    """
    Immutable application configuration.

    Constructed once at process startup.
    Passed downward to the pairing registry, relay router and routes.
    """

    # ------------------------------------------------------------------
    # Environment
    # ------------------------------------------------------------------

    env: str = "dev"
    log_level: str = "INFO"

    # ------------------------------------------------------------------
    # HTTP listener
    # ------------------------------------------------------------------

    host: str = "0.0.0.0"
    port: int = 3000
    cors_allow_origins: tuple[str, ...] = ("*",)

    # ------------------------------------------------------------------
    # Pairing
    # ------------------------------------------------------------------

    backend_url: str | None = None
    pairing_scheme: str = PAIRING_SCHEME_DEFAULT
    session_idle_ttl_s: float = SESSION_IDLE_TTL_S_DEFAULT

    # ------------------------------------------------------------------
    # Relay
    # ------------------------------------------------------------------

    producer_conflict_policy: str = PRODUCER_POLICY_REPLACE
    viewer_outbox_max_media: int = VIEWER_OUTBOX_MAX_MEDIA_DEFAULT

    # ------------------------------------------------------------------
    # Observability
    # ------------------------------------------------------------------

    enable_json_logs: bool = True

    def __post_init__(self) -> None:
        if self.producer_conflict_policy not in _PRODUCER_POLICIES:
            raise ValueError(
                f"producer_conflict_policy must be one of {_PRODUCER_POLICIES}, "
                f"got {self.producer_conflict_policy!r}"
            )
        if self.viewer_outbox_max_media <= 0:
            raise ValueError("viewer_outbox_max_media must be > 0")
        if self.session_idle_ttl_s < 0:
            raise ValueError("session_idle_ttl_s must be >= 0 (0 disables pruning)")

    # ------------------------------------------------------------------
    # Factory
    # ------------------------------------------------------------------

    @staticmethod
    def load_from_env() -> AppConfig:
        """
        Load configuration from environment variables.

        Raises:
            ValueError if a variable holds an invalid value.
        """
        backend_url = os.environ.get("BACKEND_URL", "").strip() or None
        origins = os.environ.get("CORS_ALLOW_ORIGINS", "*")

        return AppConfig(
            env=os.environ.get("ENV", "dev"),
            log_level=os.environ.get("LOG_LEVEL", "INFO"),

            host=os.environ.get("HOST", "0.0.0.0"),
            port=int(os.environ.get("PORT", "3000")),
            cors_allow_origins=tuple(
                o.strip() for o in origins.split(",") if o.strip()
            ),

            backend_url=backend_url,
            pairing_scheme=os.environ.get("PAIRING_SCHEME", PAIRING_SCHEME_DEFAULT),
            session_idle_ttl_s=float(
                os.environ.get("SESSION_IDLE_TTL_S", str(SESSION_IDLE_TTL_S_DEFAULT))
            ),

            producer_conflict_policy=os.environ.get(
                "PRODUCER_CONFLICT_POLICY", PRODUCER_POLICY_REPLACE
            ).lower(),
            viewer_outbox_max_media=int(
                os.environ.get(
                    "VIEWER_OUTBOX_MAX_MEDIA", str(VIEWER_OUTBOX_MAX_MEDIA_DEFAULT)
                )
            ),

            enable_json_logs=os.environ.get("ENABLE_JSON_LOGS", "1") == "1",
        )
