"""Item models and per-item processing states."""

from enum import Enum
from pydantic import BaseModel, Field
from typing import Optional


class ProcessingState(str, Enum):
    """Lifecycle of one item inside the coordinator.

    unseen -> pending -> (streaming -> rated | error) | cached | blacklisted
    """

    UNSEEN = "unseen"
    PENDING = "pending"
    STREAMING = "streaming"
    RATED = "rated"
    CACHED = "cached"
    BLACKLISTED = "blacklisted"  # allow-listed author, auto max score
    ERROR = "error"


class QuotedItem(BaseModel):
    """Item quoted inside another item (one level only)."""

    author_handle: str = Field(default="", description="Handle of the quoted author")
    text: str = Field(default="", description="Quoted text")
    media_urls: list[str] = Field(default_factory=list)

    model_config = {"frozen": True}


class Item(BaseModel):
    """A single post to be rated, as produced by the content extractor."""

    item_id: str = Field(..., min_length=1, description="Stable item identifier")

    text: str = Field(default="", description="Item text")

    author_handle: str = Field(default="", description="Author handle without '@'")

    media_urls: list[str] = Field(
        default_factory=list,
        description="Media URLs in display order (includes quoted media as rendered)"
    )

    quoted_item: Optional[QuotedItem] = Field(default=None)

    parent_context: Optional[str] = Field(
        default=None,
        description="Assembled ancestor text for non-root items of a thread"
    )

    conversation_id: Optional[str] = Field(
        default=None,
        description="Conversation this item was discovered in, if any"
    )

    is_thread_root: bool = Field(
        default=False,
        description="True for the original post of a conversation view"
    )

    model_config = {"frozen": True}
