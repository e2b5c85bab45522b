"""
promptstream - Core Data Models

Request-side models shared by every backend: messages, attachments, the
validated option set, and the finalized tool call produced by reassembly.
"""

from __future__ import annotations

import base64
import mimetypes
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..tools.validator import check_schema


# ============================================================
# Enums
# ============================================================

class Role(str, Enum):
    """Message roles."""
    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"
    TOOL = "tool"


class FinishReason(str, Enum):
    """Canonical finish reasons."""
    STOP = "stop"
    LENGTH = "length"
    TOOL_CALLS = "tool_calls"
    CONTENT_FILTER = "content_filter"
    ERROR = "error"


# ============================================================
# Messages
# ============================================================

@dataclass
class Message:
    """A chat message in the role/content shape both wire formats share."""
    role: Role
    content: str = ""

    @classmethod
    def system(cls, content: str) -> Message:
        return cls(role=Role.SYSTEM, content=content)

    @classmethod
    def user(cls, content: str) -> Message:
        return cls(role=Role.USER, content=content)

    @classmethod
    def assistant(cls, content: str) -> Message:
        return cls(role=Role.ASSISTANT, content=content)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> Message:
        return cls(role=Role(data["role"]), content=data.get("content") or "")

    def to_dict(self) -> Dict[str, Any]:
        return {"role": self.role.value, "content": self.content}


PromptInput = Union[str, Sequence[Union[Message, Dict[str, Any]]]]


def build_messages(
    prompt_or_messages: PromptInput,
    system_prompt: Optional[str] = None,
    history: Optional[Sequence[Union[Message, Dict[str, Any]]]] = None,
) -> List[Message]:
    """
    Normalize caller input into an ordered message list.

    A plain string becomes ``[system?, *history, user]``. A message sequence is
    used as given, with ``history`` prepended; ``system_prompt`` is only added
    when the sequence does not already start with a system message.
    """
    prior = [_coerce_message(m) for m in (history or [])]

    if isinstance(prompt_or_messages, str):
        messages = prior + [Message.user(prompt_or_messages)]
    else:
        messages = prior + [_coerce_message(m) for m in prompt_or_messages]

    if not messages:
        raise ValueError("At least one message is required")

    if system_prompt and messages[0].role != Role.SYSTEM:
        messages.insert(0, Message.system(system_prompt))

    return messages


def _coerce_message(value: Union[Message, Dict[str, Any]]) -> Message:
    if isinstance(value, Message):
        return value
    if isinstance(value, dict) and "role" in value:
        return Message.from_dict(value)
    raise ValueError(f"Not a message: {value!r}")


# ============================================================
# Attachments
# ============================================================

@dataclass(frozen=True)
class Attachment:
    """Binary content (an image) sent alongside the last user message."""
    data: bytes
    media_type: str

    @classmethod
    def from_path(cls, path: Union[str, Path]) -> Attachment:
        path = Path(path)
        media_type, _ = mimetypes.guess_type(path.name)
        if not media_type or not media_type.startswith("image/"):
            raise ValueError(f"Unsupported attachment type: {path.name}")
        return cls(data=path.read_bytes(), media_type=media_type)

    def to_base64(self) -> str:
        return base64.b64encode(self.data).decode("ascii")

    def to_data_url(self) -> str:
        return f"data:{self.media_type};base64,{self.to_base64()}"


# ============================================================
# Tool Calls
# ============================================================

@dataclass
class ToolCall:
    """
    A finalized tool call.

    ``arguments`` holds the parsed JSON value. When the streamed buffer did not
    parse, ``arguments`` is None, ``error`` describes the failure, and
    ``raw_arguments`` keeps the buffer for inspection.
    """
    index: int
    id: Optional[str]
    name: Optional[str]
    arguments: Any = None
    error: Optional[str] = None
    raw_arguments: str = ""

    @property
    def ok(self) -> bool:
        return self.error is None

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {
            "index": self.index,
            "id": self.id,
            "name": self.name,
            "arguments": self.arguments,
        }
        if self.error is not None:
            result["error"] = self.error
            result["raw_arguments"] = self.raw_arguments
        return result


# ============================================================
# Options
# ============================================================

class BackendOptions(BaseModel):
    """
    Options common to every backend.

    Backends subclass this to add their own knobs; the subclass is what
    ``Backend.option_schema`` returns. Unknown keys are rejected so a typo does
    not silently fall through to the provider defaults. Instances are frozen
    once validated.
    """
    model_config = ConfigDict(
        extra="forbid",
        frozen=True,
        populate_by_name=True,
        arbitrary_types_allowed=True,
    )

    temperature: Optional[float] = Field(default=None, ge=0.0, le=2.0)
    top_p: Optional[float] = Field(default=None, ge=0.0, le=1.0)
    max_tokens: Optional[int] = Field(default=None, gt=0)
    stop: Optional[List[str]] = None
    seed: Optional[int] = None

    system_prompt: Optional[str] = None
    history: List[Dict[str, Any]] = Field(default_factory=list)
    attachments: List[Attachment] = Field(default_factory=list)

    output_schema: Optional[Any] = Field(default=None, alias="schema")
    tool_name: Optional[str] = None
    tool_description: Optional[str] = None
    validate_output: bool = True

    timeout: Optional[float] = Field(default=None, gt=0)
    api_key: Optional[str] = Field(default=None, repr=False)

    @field_validator("stop", mode="before")
    @classmethod
    def _stop_as_list(cls, v):
        if isinstance(v, str):
            return [v]
        return v

    @field_validator("attachments", mode="before")
    @classmethod
    def _load_attachments(cls, v):
        if v is None:
            return []
        if isinstance(v, (str, Path, Attachment)):
            v = [v]
        return [a if isinstance(a, Attachment) else Attachment.from_path(a) for a in v]

    @field_validator("history", mode="before")
    @classmethod
    def _history_as_dicts(cls, v):
        if v is None:
            return []
        return [m.to_dict() if isinstance(m, Message) else m for m in v]

    @field_validator("output_schema")
    @classmethod
    def _check_schema(cls, v):
        if v is None:
            return v
        if isinstance(v, dict):
            problems = check_schema(v)
            if problems:
                raise ValueError("; ".join(problems))
            return v
        if isinstance(v, type) and issubclass(v, BaseModel):
            return v
        raise ValueError("schema must be a JSON Schema dict or a pydantic model class")

    @property
    def wants_structured_output(self) -> bool:
        return self.output_schema is not None
