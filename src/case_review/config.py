"""Environment-driven settings."""
import os
from pathlib import Path

from dotenv import load_dotenv
from pydantic import BaseModel


load_dotenv()

DEFAULT_TIMEOUT = 120.0
ANALYSIS_CONCURRENCY = 3
IMPORT_CONCURRENCY = 5


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    try:
        return int(value) if value else default
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    try:
        return float(value) if value else default
    except ValueError:
        return default


class LLMSettings(BaseModel):
    """Completion endpoint settings."""
    api_url: str = ""
    api_token: str = ""
    model: str = "claude-haiku-4-5"
    max_tokens: int = 4096
    temperature: float = 0.3
    timeout: float = DEFAULT_TIMEOUT

    @property
    def base_url(self) -> str:
        """Endpoint root as the SDK expects it (no trailing messages path)."""
        url = self.api_url.rstrip("/")
        if url.endswith("/v1/messages"):
            url = url[: -len("/v1/messages")]
        return url

    @property
    def configured(self) -> bool:
        return bool(self.api_url)


class Settings(BaseModel):
    """Process-wide settings."""
    llm: LLMSettings = LLMSettings()
    output_dir: Path = Path("output")
    tags_path: Path | None = None
    export_dir: Path | None = None
    analysis_concurrency: int = ANALYSIS_CONCURRENCY
    import_concurrency: int = IMPORT_CONCURRENCY
    env: str = "production"
    log_level: str = "INFO"

    @property
    def development(self) -> bool:
        return self.env.lower() == "development"

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from environment variables (and .env)."""
        llm = LLMSettings(
            api_url=os.getenv("LLM_API_URL", ""),
            api_token=os.getenv("LLM_API_TOKEN") or os.getenv("LLM_API_KEY", ""),
            model=os.getenv("LLM_MODEL") or LLMSettings().model,
            max_tokens=_env_int("LLM_MAX_TOKENS", 4096),
            temperature=_env_float("LLM_TEMPERATURE", 0.3),
            timeout=_env_float("LLM_TIMEOUT", DEFAULT_TIMEOUT),
        )
        tags_path = os.getenv("CASE_REVIEW_TAGS_FILE")
        export_dir = os.getenv("CASE_REVIEW_EXPORT_DIR")
        return cls(
            llm=llm,
            output_dir=Path(os.getenv("CASE_REVIEW_OUTPUT_DIR", "output")),
            tags_path=Path(tags_path) if tags_path else None,
            export_dir=Path(export_dir) if export_dir else None,
            analysis_concurrency=_env_int("CASE_REVIEW_ANALYSIS_CONCURRENCY", ANALYSIS_CONCURRENCY),
            import_concurrency=_env_int("CASE_REVIEW_IMPORT_CONCURRENCY", IMPORT_CONCURRENCY),
            env=os.getenv("APP_ENV", "production"),
            log_level=os.getenv("LOG_LEVEL", "INFO"),
        )
