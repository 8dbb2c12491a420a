"""
Data model definitions.
"""

import json
import math
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator


DEFAULT_MODEL_ALIASES: Dict[str, str] = {
    "claude-sonnet-4-5-thinking": "claude-sonnet-4-5",
    "claude-opus-4-5": "claude-opus-4-5-thinking",
    "gemini-2.5-flash-thinking": "gemini-2.5-flash",
}

DEFAULT_THINKING_MODELS: List[str] = [
    "gemini-2.5-pro",
    "rev19-uic3-1p",
    "gpt-oss-120b-medium",
]

DEFAULT_THINKING_MODEL_PREFIXES: List[str] = ["gemini-3-pro-"]


class NormalizerConfig(BaseModel):
    model_config = ConfigDict(protected_namespaces=())

    system_instruction: str = ""
    use_context_system_prompt: bool = False
    model_aliases: Dict[str, str] = Field(default_factory=lambda: dict(DEFAULT_MODEL_ALIASES))
    thinking_models: List[str] = Field(default_factory=lambda: list(DEFAULT_THINKING_MODELS))
    thinking_model_prefixes: List[str] = Field(default_factory=lambda: list(DEFAULT_THINKING_MODEL_PREFIXES))
    default_temperature: float = 1.0
    default_top_p: float = 0.85
    default_top_k: int = Field(default=50, ge=1)
    default_max_tokens: int = Field(default=8096, gt=0)
    default_thinking_budget: int = Field(default=1024, ge=0)
    default_reasoning_signature: Optional[str] = None
    default_tool_signature: Optional[str] = None
    api_key: Optional[str] = None
    log_requests: bool = True

    @field_validator("system_instruction", mode="before")
    @classmethod
    def _normalize_system_instruction(cls, value: Any) -> str:
        if value is None:
            return ""
        return str(value)

    @field_validator("default_reasoning_signature", "default_tool_signature", "api_key", mode="before")
    @classmethod
    def _blank_to_none(cls, value: Any) -> Optional[str]:
        if value is None:
            return None
        text = str(value).strip()
        return text or None

    @field_validator("default_temperature", "default_top_p", mode="before")
    @classmethod
    def _normalize_float(cls, value: Any, info) -> float:
        fallback = 1.0 if info.field_name == "default_temperature" else 0.85
        if value is None:
            return fallback
        try:
            number = float(value)
        except (TypeError, ValueError):
            return fallback
        if not math.isfinite(number) or number < 0:
            return fallback
        return number


class TokenInfo(BaseModel):
    """Per-request credential/session handle supplied by the caller."""

    session_id: str
    project_id: str = ""


class SignatureContext(BaseModel):
    reasoning_signature: Optional[str] = None
    tool_signature: Optional[str] = None


class InlineImage(BaseModel):
    mime_type: str
    data: str


class ExtractedContent(BaseModel):
    text: str = ""
    images: List[InlineImage] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Canonical parts
# ---------------------------------------------------------------------------

class TextPart(BaseModel):
    kind: Literal["text"] = "text"
    text: str
    signature: Optional[str] = None

    def to_payload(self) -> dict:
        payload: dict = {"text": self.text}
        if self.signature:
            payload["thoughtSignature"] = self.signature
        return payload


class ThoughtPart(BaseModel):
    kind: Literal["thought"] = "thought"
    text: str = " "
    thought: bool = True
    signature: Optional[str] = None

    def to_payload(self) -> dict:
        payload: dict = {"text": self.text}
        if self.thought:
            payload["thought"] = True
        if self.signature:
            payload["thoughtSignature"] = self.signature
        return payload


class InlineDataPart(BaseModel):
    kind: Literal["inline_data"] = "inline_data"
    mime_type: str
    data: str

    def to_payload(self) -> dict:
        return {"inlineData": {"mimeType": self.mime_type, "data": self.data}}


class FunctionCallPart(BaseModel):
    kind: Literal["function_call"] = "function_call"
    id: str
    name: str
    arguments: str = "{}"
    signature: Optional[str] = None

    def parsed_arguments(self) -> Dict[str, Any]:
        """Decode the JSON argument string; non-object payloads are wrapped."""
        if not self.arguments.strip():
            return {}
        try:
            parsed = json.loads(self.arguments)
        except (json.JSONDecodeError, ValueError):
            return {"query": self.arguments}
        if isinstance(parsed, dict):
            return parsed
        return {"query": self.arguments}

    def to_payload(self) -> dict:
        payload: dict = {
            "functionCall": {
                "id": self.id,
                "name": self.name,
                "args": self.parsed_arguments(),
            }
        }
        if self.signature:
            payload["thoughtSignature"] = self.signature
        return payload


class FunctionResponsePart(BaseModel):
    kind: Literal["function_response"] = "function_response"
    id: str
    name: Optional[str] = None
    output: str = ""

    def to_payload(self) -> dict:
        return {
            "functionResponse": {
                "id": self.id,
                "name": self.name,
                "response": {"output": self.output},
            }
        }


Part = Annotated[
    Union[TextPart, ThoughtPart, InlineDataPart, FunctionCallPart, FunctionResponsePart],
    Field(discriminator="kind"),
]


class CanonicalMessage(BaseModel):
    role: Literal["user", "model"]
    parts: List[Part] = Field(default_factory=list)
    has_content: bool = False

    def function_calls(self) -> List[FunctionCallPart]:
        return [part for part in self.parts if isinstance(part, FunctionCallPart)]

    def to_payload(self) -> dict:
        return {"role": self.role, "parts": [part.to_payload() for part in self.parts]}
