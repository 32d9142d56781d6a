"""Configuration models for tweetrater."""

from pydantic import BaseModel, Field, HttpUrl, field_validator
from pathlib import Path
import yaml
import os
import stat


DEFAULT_INSTRUCTIONS = """- Give high scores to insightful and impactful tweets
- Give low scores to clickbait, fearmongering, and ragebait
- Give high scores to high-effort content and artistic content"""

SORT_ORDERS = (
    "throughput-high-to-low",
    "latency-low-to-high",
    "pricing-low-to-high",
    "pricing-high-to-low",
)


class APIConfig(BaseModel):
    """Configuration for the completions API connection."""

    base_url: HttpUrl = Field(
        default="https://openrouter.ai/api/v1",
        description="Completions API base URL (OpenRouter compatible)"
    )

    models_url: HttpUrl = Field(
        default="https://openrouter.ai/api/frontend/models/find",
        description="Model list endpoint"
    )

    api_key: str = Field(
        default="",
        description="API key for authentication (empty means not configured)"
    )

    request_timeout: float = Field(
        default=30.0,
        gt=0,
        description="Per-request timeout in seconds"
    )

    referer: str = Field(
        default="https://greasyfork.org/en/scripts/532459-tweetfilter-ai",
        description="HTTP-Referer attribution header"
    )

    title: str = Field(
        default="TweetFilter-AI",
        description="X-Title attribution header"
    )

    model_config = {"frozen": True}


class ModelConfig(BaseModel):
    """Configuration for the rating and image-description models."""

    model: str = Field(
        default="google/gemini-2.0-flash-lite-001",
        description="Model identifier used for rating"
    )

    image_model: str = Field(
        default="google/gemini-2.0-flash-lite-001",
        description="Model identifier used for image descriptions"
    )

    temperature: float = Field(default=0.5, ge=0.0, le=2.0)
    top_p: float = Field(default=0.9, ge=0.0, le=1.0)
    max_tokens: int = Field(
        default=0,
        ge=0,
        description="Maximum completion tokens (0 means no limit)"
    )

    image_temperature: float = Field(default=0.5, ge=0.0, le=2.0)
    image_top_p: float = Field(default=0.9, ge=0.0, le=1.0)
    image_max_tokens: int = Field(default=0, ge=0)

    sort_order: str = Field(
        default="throughput-high-to-low",
        description="Provider sort order (first segment is sent as provider.sort)"
    )

    instructions: str = Field(
        default=DEFAULT_INSTRUCTIONS,
        description="User-defined rating instructions"
    )

    @field_validator("sort_order")
    @classmethod
    def validate_sort_order(cls, v: str) -> str:
        """Validate sort order is one the model list endpoint understands."""
        if v not in SORT_ORDERS:
            raise ValueError(
                f"Unknown sort order: {v}\n"
                f"Expected one of: {', '.join(SORT_ORDERS)}"
            )
        return v

    @property
    def provider_sort(self) -> str:
        """Sort hint sent in the request's provider block."""
        return self.sort_order.split("-")[0]

    model_config = {"frozen": True}


class PipelineConfig(BaseModel):
    """Configuration for the rating pipeline."""

    streaming: bool = Field(
        default=False,
        description="Consume responses incrementally"
    )

    max_retries: int = Field(default=3, ge=1, le=10)

    min_request_interval: float = Field(
        default=0.25,
        ge=0.0,
        description="Minimum spacing between outbound requests in seconds"
    )

    processing_delay: float = Field(
        default=0.5,
        ge=0.0,
        description="Debounce delay before an item's pipeline starts"
    )

    stream_inactivity_timeout: float = Field(
        default=10.0,
        gt=0,
        description="Seconds of stream silence treated as completion"
    )

    persist_debounce: float = Field(
        default=1.0,
        ge=0.0,
        description="Minimum seconds between cache writes during streaming"
    )

    backoff_unit: float = Field(
        default=1.0,
        ge=0.0,
        description="Retry delay unit; attempt n waits n^2 units"
    )

    enable_image_descriptions: bool = Field(default=False)

    filter_threshold: int = Field(
        default=1,
        ge=0,
        le=10,
        description="Items scoring below this are hidden"
    )

    model_config = {"frozen": True}


class StorageConfig(BaseModel):
    """Configuration for the persistent key-value store."""

    path: str = Field(
        default="~/.cache/tweetrater/store.json",
        description="Path to JSON key-value store"
    )

    @property
    def resolved_path(self) -> Path:
        return Path(self.path).expanduser()

    model_config = {"frozen": True}


class Config(BaseModel):
    """Root configuration for tweetrater."""

    api: APIConfig = Field(default_factory=APIConfig, description="API settings")
    model: ModelConfig = Field(default_factory=ModelConfig, description="Model settings")
    pipeline: PipelineConfig = Field(default_factory=PipelineConfig, description="Pipeline settings")
    storage: StorageConfig = Field(default_factory=StorageConfig, description="Storage settings")

    @classmethod
    def load(cls, path: Path) -> "Config":
        """
        Load configuration from YAML file.

        Validates file permissions before loading, since the file holds the API key.
        Raises PermissionError if file is group/world readable.

        Args:
            path: Path to config.yaml file

        Returns:
            Validated Config instance

        Raises:
            PermissionError: If file permissions are too open
            FileNotFoundError: If config file doesn't exist
            ValueError: If YAML is invalid or validation fails
        """
        if not path.exists():
            raise FileNotFoundError(
                f"Configuration file not found at {path}\n\n"
                f"Please create the file with the following format:\n\n"
                f"api:\n"
                f"  api_key: YOUR_OPENROUTER_KEY\n\n"
                f"model:\n"
                f"  model: google/gemini-2.0-flash-lite-001\n\n"
                f"pipeline:\n"
                f"  streaming: false\n"
            )

        mode = os.stat(path).st_mode
        if mode & (stat.S_IRWXG | stat.S_IRWXO):
            raise PermissionError(
                f"Config file has overly permissive permissions: {oct(mode)}\n"
                f"Run: chmod 600 {path}"
            )

        with open(path) as f:
            data = yaml.safe_load(f) or {}

        return cls(**data)

    model_config = {"frozen": True}
