from typing import Any, List
from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic_settings.sources import EnvSettingsSource


_CSV_FIELDS = {"ALLOW_ORIGINS", "ALLOW_METHODS", "ALLOW_HEADERS"}


class CSVFirstEnvSource(EnvSettingsSource):
    def decode_complex_value(self, field_name, field, value):
        # CSV-driven list fields skip JSON decoding so validators can parse them
        if isinstance(value, str) and field_name in _CSV_FIELDS:
            return value
        return super().decode_complex_value(field_name, field, value)


class Settings(BaseSettings):
    # FastAPI
    APP_NAME: str = "Billing API"
    API_V1_STR: str = "/api/v1"

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "text"  # text | json

    # Error responses
    # When False, 4xx responses carry only the slug and message, never context detail
    EXPOSE_ERROR_DETAIL: bool = True

    # CORS (env-driven, comma-separated values supported)
    ALLOW_ORIGINS: List[str] = ["http://localhost:3000", "http://127.0.0.1:3000"]
    ALLOW_METHODS: List[str] = ["GET", "POST", "PUT", "DELETE", "OPTIONS"]
    ALLOW_HEADERS: List[str] = ["Authorization", "Content-Type", "X-Request-ID"]
    ALLOW_CREDENTIALS: bool = False

    @staticmethod
    def _parse_csv_list(v: Any):
        """
        Accepts:
        - comma-separated string -> ["a","b"]
        - list/tuple/set -> coerced to list of trimmed strings
        - empty/whitespace string -> []
        - None/other -> passthrough
        """
        if v is None:
            return v
        if isinstance(v, str):
            s = v.strip()
            if not s:
                return []
            return [part.strip() for part in s.split(",") if part.strip()]
        if isinstance(v, (list, tuple, set)):
            return [str(part).strip() for part in v if str(part).strip()]
        return v

    @field_validator("ALLOW_ORIGINS", "ALLOW_METHODS", "ALLOW_HEADERS", mode="before")
    @classmethod
    def _coerce_csv_lists(cls, v: Any):
        return cls._parse_csv_list(v)

    @field_validator("LOG_FORMAT", mode="before")
    @classmethod
    def _normalize_log_format(cls, v: Any):
        if isinstance(v, str):
            v = v.strip().lower()
            if v not in ("text", "json"):
                raise ValueError("LOG_FORMAT must be 'text' or 'json'")
        return v

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls,
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings,
    ):
        return (
            init_settings,
            CSVFirstEnvSource(settings_cls),
            dotenv_settings,
            file_secret_settings,
        )

    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
    )


settings = Settings()
