from __future__ import annotations

import os

APP_VERSION = "0.4.0"


def _env_bool(name: str, default: str = "") -> bool:
    return os.getenv(name, default).lower() in ("1", "true", "yes")


def _env_list(name: str, default: str) -> list[str]:
    return [item.strip() for item in os.getenv(name, default).split(",") if item.strip()]


class Settings:
    PROJECT_NAME: str = "CMaaS Console"
    API_V1_PREFIX: str = "/api/v1"

    ENVIRONMENT: str = os.getenv("ENVIRONMENT", "development")
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")
    DOCS_ENABLED: bool = _env_bool("DOCS_ENABLED", "true")

    # Upstream CMS REST API (the console talks to {CMS_BASE_URL}/api)
    CMS_BASE_URL: str = os.getenv("CMS_BASE_URL", "http://localhost:5000")
    CMS_TIMEOUT_SECONDS: float = float(os.getenv("CMS_TIMEOUT_SECONDS", "30"))

    # Entry list behaviour
    ENTRY_PAGE_SIZE: int = int(os.getenv("ENTRY_PAGE_SIZE", "10"))
    PAGE_WINDOW: int = int(os.getenv("PAGE_WINDOW", "5"))
    SEARCH_DEBOUNCE_SECONDS: float = float(os.getenv("SEARCH_DEBOUNCE_SECONDS", "0.5"))
    TOGGLE_SETTLE_SECONDS: float = float(os.getenv("TOGGLE_SETTLE_SECONDS", "2.0"))
    CELL_TRUNCATE_AT: int = int(os.getenv("CELL_TRUNCATE_AT", "50"))

    ALLOWED_ORIGINS: list[str] = _env_list("ALLOWED_ORIGINS", "http://localhost:5173")

    # Image uploads (Cloudinary-compatible, unsigned preset)
    CLOUDINARY_CLOUD_NAME: str = os.getenv("CLOUDINARY_CLOUD_NAME", "")
    CLOUDINARY_UPLOAD_PRESET: str = os.getenv("CLOUDINARY_UPLOAD_PRESET", "")
    CLOUDINARY_API_KEY: str = os.getenv("CLOUDINARY_API_KEY", "")
    IMAGE_UPLOAD_FOLDER: str = os.getenv("IMAGE_UPLOAD_FOLDER", "cmaas")
    IMAGE_MAX_SIZE_MB: float = float(os.getenv("IMAGE_MAX_SIZE_MB", "5"))
    IMAGE_ACCEPTED_FORMATS: list[str] = _env_list(
        "IMAGE_ACCEPTED_FORMATS", "image/jpeg,image/png,image/webp,image/gif"
    )

    @property
    def cms_api_url(self) -> str:
        return f"{self.CMS_BASE_URL.rstrip('/')}/api"

    @property
    def uploads_configured(self) -> bool:
        return bool(self.CLOUDINARY_CLOUD_NAME and self.CLOUDINARY_UPLOAD_PRESET)


settings = Settings()
