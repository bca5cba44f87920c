"""
Engine configuration, with overrides from LABBOOK_* environment variables.
"""

import os
from typing import Literal, Optional

from pydantic import BaseModel, Field


DEFAULT_REGISTRY = "labbook.library:default_registry"
CELL_TIMEOUT_SECONDS = 30.0
AUTO_SAVE_DELAY_SECONDS = 2.0


class EngineConfig(BaseModel):
    """Settings for the orchestrator and its execution unit."""
    cell_timeout: float = Field(default=CELL_TIMEOUT_SECONDS, gt=0, description="Deadline per cell, in seconds")
    emit_crash_errors: bool = Field(
        default=False,
        description="Emit an error cell-result when the execution unit dies mid-cell",
    )
    auto_save_delay: float = Field(default=AUTO_SAVE_DELAY_SECONDS, ge=0, description="Auto-save quiet period")
    registry: str = Field(default=DEFAULT_REGISTRY, description="Registry as 'module:attribute'")
    unit: Literal["process", "thread"] = "process"
    poll_interval: float = Field(default=0.05, gt=0)

    @classmethod
    def from_env(cls, environ: Optional[dict] = None, **overrides) -> "EngineConfig":
        """
        Build a config from the environment.

        Recognized variables: LABBOOK_CELL_TIMEOUT, LABBOOK_EMIT_CRASH_ERRORS,
        LABBOOK_AUTO_SAVE_DELAY, LABBOOK_REGISTRY, LABBOOK_UNIT. Keyword
        overrides win over the environment.
        """
        environ = os.environ if environ is None else environ
        values = {}
        if environ.get("LABBOOK_CELL_TIMEOUT"):
            values["cell_timeout"] = float(environ["LABBOOK_CELL_TIMEOUT"])
        if environ.get("LABBOOK_EMIT_CRASH_ERRORS"):
            values["emit_crash_errors"] = environ["LABBOOK_EMIT_CRASH_ERRORS"].lower() in ("1", "true", "yes")
        if environ.get("LABBOOK_AUTO_SAVE_DELAY"):
            values["auto_save_delay"] = float(environ["LABBOOK_AUTO_SAVE_DELAY"])
        if environ.get("LABBOOK_REGISTRY"):
            values["registry"] = environ["LABBOOK_REGISTRY"]
        if environ.get("LABBOOK_UNIT"):
            values["unit"] = environ["LABBOOK_UNIT"]
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)
