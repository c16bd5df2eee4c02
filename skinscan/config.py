from typing import List, Optional

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


DEFAULT_VISION_MODELS = [
    "llama-3.2-90b-vision-preview",
    "meta-llama/llama-4-scout-17b-16e-instruct",
    "llama-3.2-11b-vision-preview",
]


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    app_name: str = "skinscan"
    log_level: str = "INFO"

    # request limits
    max_image_mb: int = 10

    # inference service
    groq_api_key: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("GROQ_API_KEY", "SKINSCAN_API_KEY"),
    )
    inference_url: str = "https://api.groq.com/openai/v1/chat/completions"
    vision_models: List[str] = Field(
        default_factory=lambda: list(DEFAULT_VISION_MODELS),
        min_length=1,
    )
    temperature: float = 0.1
    request_timeout_seconds: float = 60.0

    # preprocessing before transmission
    image_max_width: int = 1024
    image_quality: float = 0.7


settings = Settings()
