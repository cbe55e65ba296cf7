"""Tool outcome models."""

import json
from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from numera.errors import ToolErrorKind


class ToolSuccess(BaseModel):
    """A tool call that returned normally."""

    model_config = ConfigDict(frozen=True)

    status: Literal["success"] = "success"
    output: Any = None

    def as_text(self) -> str:
        """Serialize the output for the completion service."""
        if isinstance(self.output, str):
            return self.output
        return json.dumps(self.output, ensure_ascii=False, sort_keys=True)


class ToolFailure(BaseModel):
    """A tool call that failed before, during or instead of running."""

    model_config = ConfigDict(frozen=True)

    status: Literal["error"] = "error"
    kind: ToolErrorKind
    message: str
    details: list[dict[str, Any]] = Field(default_factory=list)

    def as_text(self) -> str:
        """Serialize the failure for the completion service."""
        payload: dict[str, Any] = {"error": self.kind.value, "message": self.message}
        if self.details:
            payload["details"] = self.details
        return json.dumps(payload, ensure_ascii=False, sort_keys=True)


ToolOutcome = Annotated[ToolSuccess | ToolFailure, Field(discriminator="status")]
