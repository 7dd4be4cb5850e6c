"""JSON-lines protocol messages between the presentation layer and the engine."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Optional


def to_camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.title() for part in rest)


def to_snake(name: str) -> str:
    return "".join(f"_{c.lower()}" if c.isupper() else c for c in name)


def camelize(data: dict[str, Any]) -> dict[str, Any]:
    """Rename snake_case keys to the camelCase the UI expects."""
    return {to_camel(k): v for k, v in data.items()}


@dataclass
class Request:
    """Incoming call from the presentation layer."""
    id: int
    method: str
    params: dict = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict) -> Request:
        return cls(
            id=data.get("id", 0),
            method=data["method"],
            params=data.get("params") or {},
        )


@dataclass
class Response:
    id: int
    result: Optional[dict] = None
    error: Optional[str] = None

    def to_json_line(self) -> str:
        d: dict[str, Any] = {"id": self.id}
        if self.error is not None:
            d["error"] = self.error
        else:
            d["result"] = self.result
        return json.dumps(d) + "\n"


@dataclass
class Notification:
    """Server-initiated message, e.g. ``difficultyChanged`` (no reply expected)."""
    method: str
    params: dict = field(default_factory=dict)

    def to_json_line(self) -> str:
        return json.dumps({"method": self.method, "params": self.params}) + "\n"
