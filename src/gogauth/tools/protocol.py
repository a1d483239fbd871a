# Tool protocol — string-returning tools bound to an agent session.
# Created: 2026-10-16

import json
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class SessionContext:
    """Which agent and conversation a tool call belongs to."""

    agent_id: str
    session_key: str


@dataclass
class ToolDefinition:
    """Tool definition for LLM function calling."""

    name: str
    description: str
    parameters: dict[str, Any]  # JSON Schema
    trust_level: str = "standard"  # standard, high, critical

    def to_openai_schema(self) -> dict[str, Any]:
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.parameters,
            },
        }

    def to_anthropic_schema(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "input_schema": self.parameters,
        }


class BaseTool(ABC):
    """Base class for tools.

    Tools take keyword parameters and return a string: JSON on success,
    ``"Error: ..."`` on failure.
    """

    @property
    @abstractmethod
    def name(self) -> str: ...

    @property
    @abstractmethod
    def description(self) -> str: ...

    @property
    def trust_level(self) -> str:
        return "standard"

    @property
    def parameters(self) -> dict[str, Any]:
        return {"type": "object", "properties": {}, "required": []}

    @property
    def definition(self) -> ToolDefinition:
        return ToolDefinition(
            name=self.name,
            description=self.description,
            parameters=self.parameters,
            trust_level=self.trust_level,
        )

    @abstractmethod
    async def execute(self, **params: Any) -> str: ...

    def _error(self, message: str) -> str:
        return f"Error: {message}"

    def _json(self, payload: Any) -> str:
        if hasattr(payload, "model_dump"):
            payload = payload.model_dump(exclude_none=True)
        return json.dumps(payload, indent=2)
