"""Optional per-image descriptions from a vision model."""

from typing import Optional

from tweetrater.llm.requests import build_image_description_request
from tweetrater.llm.transport import CompletionTransport
from tweetrater.models.config import ModelConfig
from tweetrater.services.exceptions import RatingError
from tweetrater.services.rate_limiter import RateLimiter
from tweetrater.utils.logging import get_logger


logger = get_logger(__name__)

DESCRIPTION_ERROR = "[Error getting image description]"


class ImageDescriber:
    """
    Describe images one request at a time through the shared rate limiter.

    Failures never propagate: an image that cannot be described is listed
    with a placeholder so the rating can still go ahead.
    """

    def __init__(
        self,
        transport: CompletionTransport,
        rate_limiter: RateLimiter,
        settings: ModelConfig,
        api_key: str,
        request_timeout: Optional[float] = None,
    ):
        self.transport = transport
        self.rate_limiter = rate_limiter
        self.settings = settings
        self.api_key = api_key
        self.request_timeout = request_timeout

    async def describe_one(self, url: str) -> str:
        """Return the model's description of one image, or the error placeholder."""
        await self.rate_limiter.acquire()
        request = build_image_description_request(self.settings, url)
        try:
            response = await self.transport.complete(request, self.api_key, self.request_timeout)
        except RatingError as e:
            logger.warning("image_description_failed", url=url, error=str(e))
            return DESCRIPTION_ERROR

        choices = response.body.get("choices") or [{}]
        content = ((choices[0] or {}).get("message") or {}).get("content")
        if not content:
            logger.warning("image_description_empty", url=url)
            return DESCRIPTION_ERROR
        return content

    async def describe(self, urls: list[str]) -> str:
        """
        Describe each image in order.

        Returns:
            Lines of the form "[IMAGE n]: <description>" joined by newlines,
            or "" when there are no URLs
        """
        descriptions = []
        for url in urls:
            descriptions.append(await self.describe_one(url))
        return "\n".join(f"[IMAGE {i}]: {desc}" for i, desc in enumerate(descriptions, start=1))
