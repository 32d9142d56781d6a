"""Available model list and image capability lookup."""

from typing import Any, Dict, Optional

from tweetrater.llm.transport import CompletionTransport
from tweetrater.utils.logging import get_logger


logger = get_logger(__name__)


def model_id_of(model: Dict[str, Any]) -> str:
    return model.get("slug") or model.get("id") or model.get("name") or "Unknown Model"


def is_vision_model(model: Dict[str, Any]) -> bool:
    """True if any known field advertises image input."""
    if "image" in (model.get("input_modalities") or []):
        return True
    architecture = model.get("architecture") or {}
    if "image" in (architecture.get("input_modalities") or []):
        return True
    return "image" in (architecture.get("modality") or "")


def _price(value: Any) -> Optional[float]:
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def format_model_label(model: Dict[str, Any]) -> str:
    """
    Format a display label: id, vision marker, and per-token pricing.

    Example:
        >>> format_model_label({"slug": "a/b", "input_modalities": ["image"],
        ...                     "pricing": {"prompt": "0.0000001", "completion": "0.0000004"}})
        '[vision] a/b - $0.0000001/in $0.0000004/out'
    """
    label = model_id_of(model)

    pricing = (model.get("endpoint") or {}).get("pricing") or model.get("pricing")
    pricing_info = ""
    if pricing:
        prompt_price = _price(pricing.get("prompt"))
        completion_price = _price(pricing.get("completion"))
        if prompt_price is not None:
            pricing_info += f" - ${prompt_price:.7f}/in"
            if completion_price is not None and completion_price != prompt_price:
                pricing_info += f" ${completion_price:.7f}/out"
        elif completion_price is not None:
            pricing_info += f" - ${completion_price:.7f}/out"

    if is_vision_model(model):
        label = "[vision] " + label

    return label + pricing_info


class ModelCatalog:
    """
    Cached copy of the provider's model list.

    Until refresh() succeeds the catalog is empty and no model is assumed to
    accept images.
    """

    def __init__(self, transport: CompletionTransport, api_key: str, sort_order: str):
        self.transport = transport
        self.api_key = api_key
        self.sort_order = sort_order
        self.models: list[Dict[str, Any]] = []

    async def refresh(self) -> list[Dict[str, Any]]:
        """
        Fetch the model list. Errors propagate as typed RatingErrors and leave
        the previous list in place.
        """
        models = await self.transport.list_models(self.api_key, self.sort_order)
        self.models = models
        logger.info("model_catalog_refreshed", count=len(models))
        return models

    def find(self, model_id: str) -> Optional[Dict[str, Any]]:
        for model in self.models:
            if model.get("slug") == model_id or model.get("id") == model_id:
                return model
        return None

    def supports_images(self, model_id: str) -> bool:
        model = self.find(model_id)
        if model is None:
            return False
        return "image" in (model.get("input_modalities") or [])
