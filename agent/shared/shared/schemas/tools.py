"""Schemas for the tool manifest and the /execute round trip."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field


class ToolParameter(BaseModel):
    """One argument a tool accepts."""

    name: str
    type: str  # JSON schema type name: string, integer, number, object, array
    description: str
    required: bool = True
    enum: list[str] | None = None


class ToolDefinition(BaseModel):
    name: str  # "<module>.<method>", e.g. "tracker.stats"
    description: str
    parameters: list[ToolParameter]


class ModuleManifest(BaseModel):
    """Everything a caller needs to discover the module's tools."""

    module_name: str
    description: str
    tools: list[ToolDefinition]


class ToolCall(BaseModel):
    """Tool invocation made on behalf of a verified user."""

    tool_name: str
    arguments: dict[str, Any] = Field(default_factory=dict)
    user_id: str | None = None


class ToolResult(BaseModel):
    """Outcome of one tool invocation; ``error`` is set when ``success`` is False."""

    tool_name: str
    success: bool
    result: Any = None
    error: str | None = None
