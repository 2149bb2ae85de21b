"""
Engine settings.

Values come from ``BLOCKCRAFT_*`` environment variables, then from a ``.env``
file found from the working directory, and fall back to the defaults below.
"""

from __future__ import annotations
import os

import dotenv
from pydantic import BaseModel, Field


class EngineSettings(BaseModel):
    """
    Attributes:
        max_depth: Deepest block nesting the parser builds; deeper delimiters stay literal content
        default_transform_priority: Priority of transform rules that declare none
        delimiter_prefix: Marker prefix of block delimiters (``<!-- wp:name -->``)
        default_namespace: Namespace written without prefix in delimiters
    """
    max_depth: int = Field(default=64, ge=1)
    default_transform_priority: int = 10
    delimiter_prefix: str = "wp"
    default_namespace: str = "core"

    @classmethod
    def from_env(cls) -> EngineSettings:
        # process environment wins over the .env file
        env = {**dotenv.dotenv_values(dotenv.find_dotenv(usecwd=True)), **os.environ}
        return cls(
            max_depth=int(env.get("BLOCKCRAFT_MAX_DEPTH") or 64),
            default_transform_priority=int(env.get("BLOCKCRAFT_DEFAULT_TRANSFORM_PRIORITY") or 10),
            delimiter_prefix=env.get("BLOCKCRAFT_DELIMITER_PREFIX") or "wp",
            default_namespace=env.get("BLOCKCRAFT_DEFAULT_NAMESPACE") or "core",
        )
