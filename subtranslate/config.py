"""Runtime settings read from the environment"""

import logging
import os
from pathlib import Path
from typing import Dict, List, Mapping, Optional

from . import __version__
from .utils.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

TRUE_VALUES = {"1", "true", "yes", "on"}


def _env_int(env: Mapping[str, str], name: str, default: int, minimum: int = 0) -> int:
    raw = env.get(name)
    if raw is None or str(raw).strip() == "":
        return default
    try:
        return max(int(raw), minimum)
    except ValueError:
        logger.warning(f"Ignoring invalid {name}={raw!r}, using {default}")
        return default


def _env_float(env: Mapping[str, str], name: str, default: float, minimum: float = 0.0) -> float:
    raw = env.get(name)
    if raw is None or str(raw).strip() == "":
        return default
    try:
        return max(float(raw), minimum)
    except ValueError:
        logger.warning(f"Ignoring invalid {name}={raw!r}, using {default}")
        return default


def _env_bool(env: Mapping[str, str], name: str, default: bool) -> bool:
    raw = env.get(name)
    if raw is None or str(raw).strip() == "":
        return default
    return str(raw).strip().lower() in TRUE_VALUES


class Settings:
    """All tunables of the add-on; credentials are validated at startup"""

    def __init__(self, env: Optional[Mapping[str, str]] = None):
        env = os.environ if env is None else env

        self.openai_api_key: str = env.get("OPENAI_API_KEY", "").strip()
        self.opensub_api_key: str = env.get("OPENSUB_API_KEY", "").strip()

        self.port: int = _env_int(env, "PORT", 7000, minimum=1)
        self.base_url: str = (
            env.get("BASE_URL")
            or env.get("RENDER_EXTERNAL_URL")
            or f"http://localhost:{self.port}"
        ).rstrip("/")
        self.subs_dir: Path = Path(env.get("SUBS_DIR") or Path.cwd() / "subs")

        self.source_language: str = env.get("SOURCE_LANGUAGE", "en").strip() or "en"
        self.target_language: str = env.get("TARGET_LANGUAGE", "he").strip() or "he"

        self.openai_model: str = env.get("OPENAI_MODEL", "gpt-3.5-turbo").strip() or "gpt-3.5-turbo"
        self.openai_base_url: Optional[str] = env.get("OPENAI_BASE_URL") or None
        self.opensub_base_url: str = env.get("OPENSUB_BASE_URL") or "https://api.opensubtitles.com/api/v1"
        self.opensub_user_agent: str = env.get("OPENSUB_USER_AGENT") or f"SubTranslate v{__version__}"

        self.catalog_timeout: float = _env_float(env, "CATALOG_TIMEOUT", 10.0, minimum=1.0)
        self.download_timeout: float = _env_float(env, "DOWNLOAD_TIMEOUT", 15.0, minimum=1.0)
        self.translation_timeout: float = _env_float(env, "TRANSLATION_TIMEOUT", 120.0, minimum=1.0)

        self.chunk_line_threshold: int = _env_int(env, "CHUNK_LINE_THRESHOLD", 1000, minimum=1)
        self.chunk_batch_size: int = _env_int(env, "CHUNK_BATCH_SIZE", 100, minimum=1)
        self.min_subtitle_bytes: int = _env_int(env, "MIN_SUBTITLE_BYTES", 32, minimum=1)
        self.verify_structure: bool = _env_bool(env, "VERIFY_STRUCTURE", False)
        self.inflight_wait_timeout: float = _env_float(env, "INFLIGHT_WAIT_TIMEOUT", 30.0)
        self.http_max_retries: int = _env_int(env, "HTTP_MAX_RETRIES", 0)

        self.log_level: str = (env.get("LOG_LEVEL") or "INFO").upper()

    def missing_credentials(self) -> List[str]:
        missing = []
        if not self.openai_api_key:
            missing.append("OPENAI_API_KEY")
        if not self.opensub_api_key:
            missing.append("OPENSUB_API_KEY")
        return missing

    @property
    def credentials_configured(self) -> bool:
        return not self.missing_credentials()

    @property
    def cache_suffix(self) -> str:
        return f"_{self.target_language}.srt"

    def validate(self):
        """Raises ConfigurationError when the add-on cannot run"""
        missing = self.missing_credentials()
        if missing:
            raise ConfigurationError(f"Missing required environment variables: {', '.join(missing)}")

    def to_dict(self) -> Dict[str, object]:
        """Settings without secrets, for logging"""
        return {
            "port": self.port,
            "base_url": self.base_url,
            "subs_dir": str(self.subs_dir),
            "source_language": self.source_language,
            "target_language": self.target_language,
            "openai_model": self.openai_model,
            "catalog_timeout": self.catalog_timeout,
            "download_timeout": self.download_timeout,
            "translation_timeout": self.translation_timeout,
            "chunk_line_threshold": self.chunk_line_threshold,
            "chunk_batch_size": self.chunk_batch_size,
            "verify_structure": self.verify_structure,
            "inflight_wait_timeout": self.inflight_wait_timeout,
        }


_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Get or create the process-wide settings"""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def reset_settings():
    global _settings
    _settings = None
