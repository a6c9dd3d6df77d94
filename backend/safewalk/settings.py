from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _default_graph_asset_path() -> str:
    # The bundled city graph ships inside the package so a bare checkout can route.
    return str(Path(__file__).resolve().parent / "assets" / "popayan_centro.json")


class Settings(BaseSettings):
    """Validated settings (env-driven), keeping config out of code for easy extension."""

    model_config = SettingsConfigDict(
        # Support both "repo root/.env" and "backend/.env" (local dev)
        env_file=(".env", "../.env"),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    graph_asset_path: str = Field(default_factory=_default_graph_asset_path, alias="GRAPH_ASSET_PATH")
    zone_containment: Literal["bbox", "polygon"] = Field(default="bbox", alias="ZONE_CONTAINMENT")

    out_dir: str = Field(default="out", alias="OUT_DIR")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    route_cache_ttl_s: int = Field(default=600, ge=1, alias="ROUTE_CACHE_TTL_S")
    route_cache_max_entries: int = Field(default=512, ge=1, alias="ROUTE_CACHE_MAX_ENTRIES")

    # Advice generation is an external, optional collaborator. An empty key means
    # every request is answered with the static fallback advice.
    advice_api_key: str = Field(default="", alias="GEMINI_API_KEY")
    advice_base_url: str = Field(
        default="https://generativelanguage.googleapis.com/v1beta",
        alias="ADVICE_BASE_URL",
    )
    advice_model: str = Field(default="gemini-2.5-flash", alias="ADVICE_MODEL")
    advice_timeout_s: float = Field(default=8.0, ge=1.0, le=60.0, alias="ADVICE_TIMEOUT_S")
    advice_max_retries: int = Field(default=3, ge=1, le=8, alias="ADVICE_MAX_RETRIES")

    cors_allow_origins: str = Field(default="*", alias="CORS_ALLOW_ORIGINS")

    @field_validator("zone_containment", mode="before")
    @classmethod
    def _fold_containment_case(cls, v: object) -> object:
        # Case and padding are forgiven; unknown modes fail validation.
        return v.strip().lower() if isinstance(v, str) else v

    @property
    def cors_origins(self) -> list[str]:
        return [item.strip() for item in self.cors_allow_origins.split(",") if item.strip()]


settings = Settings()
