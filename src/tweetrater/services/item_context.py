"""Text rendering of a single item for the rating prompt.

Format:
    [TWEET <id>]
     Author:@<handle>:
    <text>
    [MEDIA_DESCRIPTION]:          (only when image descriptions are enabled)
    [IMAGE 1]: ...
    [MEDIA_URLS]:
    <url>, <url>
    [QUOTED_TWEET]:
     Author:@<quoted handle>:
    <quoted text>
    [QUOTED_TWEET_MEDIA_DESCRIPTION]:
    ...
    [QUOTED_TWEET_MEDIA_URLS]:
    <url>, <url>

Replies are rendered as "<ancestors>\\n[REPLY]\\n<own context>".
"""

from typing import Optional

from tweetrater.llm.image_describer import ImageDescriber
from tweetrater.models.item import Item


REPLY_SEPARATOR = "\n[REPLY]\n"


class ItemContextBuilder:
    """Render items, optionally with image descriptions."""

    def __init__(self, describer: Optional[ImageDescriber] = None, enable_image_descriptions: bool = False):
        self.describer = describer
        self.enable_image_descriptions = enable_image_descriptions and describer is not None

    async def _media_section(self, label: str, urls: list[str]) -> str:
        section = ""
        if self.enable_image_descriptions:
            description = await self.describer.describe(urls)
            section += f"\n[{label}_DESCRIPTION]:\n{description}"
        section += f"\n[{label}_URLS]:\n{', '.join(urls)}"
        return section

    async def build_own(self, item: Item) -> str:
        """Render the item by itself, without any thread ancestors."""
        quoted = item.quoted_item
        quoted_urls = quoted.media_urls if quoted is not None else []
        main_urls = [url for url in item.media_urls if url not in quoted_urls]

        context = f"[TWEET {item.item_id}]\n Author:@{item.author_handle}:\n{item.text}"

        if main_urls:
            context += await self._media_section("MEDIA", main_urls)

        if quoted is not None and (quoted.text or quoted_urls):
            context += f"\n[QUOTED_TWEET]:\n Author:@{quoted.author_handle}:\n{quoted.text}"
            if quoted_urls:
                context += await self._media_section("QUOTED_TWEET_MEDIA", quoted_urls)

        return context

    async def build(self, item: Item, ancestors: Optional[str] = None) -> str:
        """
        Render the item with its thread ancestors prepended.

        Args:
            item: Item to render
            ancestors: Assembled thread text preceding the item; falls back
                to item.parent_context. Ignored for thread roots.

        Returns:
            Context text to rate
        """
        own = await self.build_own(item)
        prefix = ancestors if ancestors is not None else item.parent_context
        if prefix and not item.is_thread_root:
            return prefix + REPLY_SEPARATOR + own
        return own
