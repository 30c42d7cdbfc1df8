"""Engine configuration.

Plain BaseModel with defaults, optionally overridden from CROSSCUT_* environment
variables. The CLI loads a .env file before calling from_env().
"""

import os
from pathlib import Path

from pydantic import BaseModel, Field

ENV_PREFIX = "CROSSCUT_"


class EngineConfig(BaseModel):
    """Tunables for the interview engine."""

    follow_up_ambiguity_threshold: int = Field(
        default=7, ge=1, le=10, description="Ambiguity at or above which a follow-up is asked"
    )
    follow_up_score_threshold: int = Field(
        default=2, ge=0, le=4, description="Score at or above which a follow-up is asked"
    )
    context_messages: int = Field(
        default=10, ge=0, description="Transcript entries passed to the scorer as context"
    )
    safety_timeout_seconds: float = Field(
        default=30.0, gt=0, description="Safety classifier timeout"
    )
    scoring_timeout_seconds: float = Field(default=60.0, gt=0, description="Item scorer timeout")
    db_path: Path = Field(
        default=Path(".crosscut/sessions.db"), description="SQLite session database"
    )

    @classmethod
    def from_env(cls, environ: dict[str, str] | None = None) -> "EngineConfig":
        """Build a config from CROSSCUT_* variables, falling back to defaults.

        Args:
            environ: Mapping to read from (defaults to os.environ)

        Returns:
            EngineConfig with every variable that was set applied.
        """
        env = os.environ if environ is None else environ
        values: dict[str, str] = {}
        for name in cls.model_fields:
            raw = env.get(f"{ENV_PREFIX}{name.upper()}")
            if raw is not None and raw != "":
                values[name] = raw
        return cls.model_validate(values)
