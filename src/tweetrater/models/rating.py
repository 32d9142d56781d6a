"""Rating request/result and cache entry models."""

from pydantic import BaseModel, Field
from typing import Any, Literal, Optional


class ImageURL(BaseModel):
    url: str

    model_config = {"frozen": True}


class ContentPart(BaseModel):
    """One part of a multi-part chat message (text or image reference)."""

    type: Literal["text", "image_url"] = Field(..., description="Part type")
    text: Optional[str] = Field(default=None)
    image_url: Optional[ImageURL] = Field(default=None)

    @classmethod
    def from_text(cls, text: str) -> "ContentPart":
        return cls(type="text", text=text)

    @classmethod
    def from_image(cls, url: str) -> "ContentPart":
        return cls(type="image_url", image_url=ImageURL(url=url))

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(exclude_none=True)

    model_config = {"frozen": True}


class RatingRequest(BaseModel):
    """
    Fully built completion request for rating one item.

    Immutable once built; retries resend the identical request.
    """

    model_id: str = Field(..., description="Model identifier")
    system_prompt: str = Field(default="", description="System prompt text (omitted when empty)")
    user_content: list[ContentPart] = Field(..., description="User message parts")
    temperature: float = Field(default=0.5)
    top_p: float = Field(default=0.9)
    max_tokens: int = Field(default=0, description="0 means no limit")
    provider_sort: str = Field(default="throughput")
    streaming: bool = Field(default=False)
    safety_settings: list[dict[str, str]] = Field(
        default_factory=list,
        description="Provider safety settings (sent as config.safetySettings)"
    )

    def to_payload(self) -> dict[str, Any]:
        """
        Render the request as a chat completions JSON body.

        Returns:
            Dict in the shape:
            {model, messages:[{role, content:[...]}], temperature, top_p,
             max_tokens, provider:{sort, allow_fallbacks}, stream?}
        """
        messages: list[dict[str, Any]] = []
        if self.system_prompt:
            messages.append({
                "role": "system",
                "content": [{"type": "text", "text": self.system_prompt}],
            })
        messages.append({
            "role": "user",
            "content": [part.to_payload() for part in self.user_content],
        })

        payload: dict[str, Any] = {
            "model": self.model_id,
            "messages": messages,
            "temperature": self.temperature,
            "top_p": self.top_p,
            "provider": {
                "sort": self.provider_sort,
                "allow_fallbacks": True,
            },
        }
        if self.max_tokens > 0:
            payload["max_tokens"] = self.max_tokens
        if self.safety_settings:
            payload["config"] = {"safetySettings": list(self.safety_settings)}
        if self.streaming:
            payload["stream"] = True
        return payload

    model_config = {"frozen": True}


class RatingResult(BaseModel):
    """Outcome of a rating run (one or more attempts)."""

    score: Optional[int] = Field(default=None)
    content: str = Field(default="", description="Raw rationale text")
    error: bool = Field(default=False)
    raw: Optional[dict[str, Any]] = Field(default=None, description="Provider response")
    attempts: int = Field(default=0, ge=0)
    message: str = Field(default="", description="Last error message, if any")


class CacheEntry(BaseModel):
    """Cached rating for one item.

    An entry with streaming=False is final and never rewritten; a streaming
    entry is advisory and may be overwritten by later deltas of the same attempt.
    """

    item_id: str
    source_content: str = Field(default="", description="Exact text that was rated")
    score: int
    description: str = Field(default="")
    streaming: bool = Field(default=False)
    timestamp: Optional[float] = Field(default=None, description="Unix time; None while streaming")
