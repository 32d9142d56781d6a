"""Pydantic models for decoded completion stream events."""

from pydantic import BaseModel, Field
from typing import Any, Literal, Optional, Union


class StreamDelta(BaseModel):
    """
    One incremental content fragment.

    `content` is the accumulated text so far, so consumers never need to
    concatenate deltas themselves.
    """

    type: Literal["delta"] = Field(default="delta", description="Event type identifier")

    delta: str = Field(default="", description="Fragment carried by this event")

    content: str = Field(default="", description="Accumulated content including this fragment")

    data: Optional[dict[str, Any]] = Field(default=None, description="Raw parsed event payload")

    attempt: int = Field(default=1, ge=1, description="Rating attempt that produced this delta")


class StreamComplete(BaseModel):
    """Terminal event: the stream ended normally or went quiet."""

    type: Literal["complete"] = Field(default="complete", description="Event type identifier")

    content: str = Field(default="", description="Final accumulated content")

    data: Optional[dict[str, Any]] = Field(default=None, description="Last parsed event payload")

    timed_out: bool = Field(default=False, description="True when ended by inactivity timeout")

    reason: Literal["done", "eof", "empty_chunks", "timeout"] = Field(
        default="done",
        description="What terminated the stream"
    )


class StreamFailed(BaseModel):
    """Terminal event: the transport failed mid-stream."""

    type: Literal["failed"] = Field(default="failed", description="Event type identifier")

    message: str = Field(..., description="Human-readable failure")

    content: str = Field(default="", description="Content accumulated before the failure")

    error: Optional[Exception] = Field(default=None, description="Underlying typed error")

    model_config = {"arbitrary_types_allowed": True}


StreamEvent = Union[StreamDelta, StreamComplete, StreamFailed]
