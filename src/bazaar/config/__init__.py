from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from .database import DatabaseSettings
from .events import EventSettings
from .llm import LLMSettings
from .negotiation import NegotiationSettings
from .telemetry import TelemetrySettings


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        env_prefix="BAZAAR_",
        extra="ignore",
    )

    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    negotiation: NegotiationSettings = Field(default_factory=NegotiationSettings)
    llm: LLMSettings = Field(default_factory=LLMSettings)
    events: EventSettings = Field(default_factory=EventSettings)
    telemetry: TelemetrySettings = Field(default_factory=TelemetrySettings)


@lru_cache
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
