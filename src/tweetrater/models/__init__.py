"""Pydantic data models for tweetrater."""

from tweetrater.models.item import Item, ProcessingState, QuotedItem
from tweetrater.models.rating import CacheEntry, ContentPart, RatingRequest, RatingResult
from tweetrater.models.stream_events import StreamComplete, StreamDelta, StreamFailed
