"""Data structures exchanged with a tool provider."""

from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class ToolDescriptor(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    description: str = ""
    input_schema: dict[str, Any] = Field(default_factory=dict)

    @property
    def required_params(self) -> list[str]:
        required = self.input_schema.get("required") or []
        return [r for r in required if isinstance(r, str)]


class ContentBlock(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: str = "text"  # text, image, resource, ...
    text: Optional[str] = None


class ToolResponse(BaseModel):
    """Result of one tool invocation, as reported by the provider."""
    model_config = ConfigDict(frozen=True)

    content: tuple[ContentBlock, ...] = ()
    is_error: bool = False

    @classmethod
    def from_text(cls, text: str, is_error: bool = False) -> "ToolResponse":
        return cls(content=(ContentBlock(type="text", text=text),), is_error=is_error)
