"""Construction of completion requests."""

import re

from tweetrater.llm.prompts import IMAGE_DESCRIPTION_PROMPT, SYSTEM_PROMPT, build_rating_prompt
from tweetrater.models.config import ModelConfig
from tweetrater.models.rating import ContentPart, RatingRequest


SAFETY_SETTINGS = [
    {"category": "HARM_CATEGORY_HARASSMENT", "threshold": "BLOCK_NONE"},
    {"category": "HARM_CATEGORY_HATE_SPEECH", "threshold": "BLOCK_NONE"},
    {"category": "HARM_CATEGORY_SEXUALLY_EXPLICIT", "threshold": "BLOCK_NONE"},
    {"category": "HARM_CATEGORY_DANGEROUS_CONTENT", "threshold": "BLOCK_NONE"},
    {"category": "HARM_CATEGORY_CIVIC_INTEGRITY", "threshold": "BLOCK_NONE"},
]

_MEDIA_SECTION = re.compile(r"\[(?:QUOTED_TWEET_)?MEDIA_URLS\]:[ \t]*\n([^\n]*)")


def _safety_settings_for(model_id: str) -> list[dict[str, str]]:
    return [dict(s) for s in SAFETY_SETTINGS] if "gemini" in model_id else []


def extract_media_urls(context: str) -> list[str]:
    """
    Collect media URLs listed in an assembled item context.

    Reads every [MEDIA_URLS] and [QUOTED_TWEET_MEDIA_URLS] section, including
    those that belong to thread ancestors, and de-duplicates in order.

    Args:
        context: Text produced by ItemContextBuilder / ThreadContextAssembler

    Returns:
        Ordered unique list of URLs
    """
    urls: list[str] = []
    for match in _MEDIA_SECTION.finditer(context):
        for url in match.group(1).split(", "):
            url = url.strip()
            if url and url not in urls:
                urls.append(url)
    return urls


def build_rating_request(
    settings: ModelConfig,
    item_id: str,
    content: str,
    media_urls: list[str],
    supports_images: bool,
    streaming: bool = False,
) -> RatingRequest:
    """
    Build the immutable rating request for one item.

    Image parts are attached only when the model accepts image input.

    Args:
        settings: Model settings (model id, sampling parameters, instructions)
        item_id: Item under review
        content: Assembled context to rate
        media_urls: URLs to attach as image parts
        supports_images: Whether settings.model accepts images
        streaming: Request a streamed response

    Returns:
        RatingRequest ready for the retry controller
    """
    parts = [ContentPart.from_text(build_rating_prompt(item_id, content, settings.instructions))]
    if supports_images:
        parts.extend(ContentPart.from_image(url) for url in media_urls)

    return RatingRequest(
        model_id=settings.model,
        system_prompt=SYSTEM_PROMPT,
        user_content=parts,
        temperature=settings.temperature,
        top_p=settings.top_p,
        max_tokens=settings.max_tokens,
        provider_sort=settings.provider_sort,
        streaming=streaming,
        safety_settings=_safety_settings_for(settings.model),
    )


def build_image_description_request(settings: ModelConfig, url: str) -> RatingRequest:
    """Build a non-streaming request asking the image model to describe one image."""
    return RatingRequest(
        model_id=settings.image_model,
        system_prompt="",
        user_content=[
            ContentPart.from_text(IMAGE_DESCRIPTION_PROMPT),
            ContentPart.from_image(url),
        ],
        temperature=settings.image_temperature,
        top_p=settings.image_top_p,
        max_tokens=settings.image_max_tokens,
        provider_sort=settings.provider_sort,
        streaming=False,
        safety_settings=_safety_settings_for(settings.image_model),
    )
