"""Options accepted by :func:`histvault.core.logging.configure_logging`."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class LogConfig(BaseModel):
    """Sink selection and level for the JSON log stream."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    level: str = "INFO"
    console_output: bool = True
    console_stream: Any = None
    file_output: bool = False
    file_path: str | None = None
    extra: dict[str, Any] = Field(default_factory=dict)


__all__ = ["LogConfig"]
