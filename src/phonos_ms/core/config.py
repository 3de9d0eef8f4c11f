"""
Configuration Management for phonos-ms.

This module provides centralized configuration handling with:
    - Default values (Defaults class)
    - Dataclass-based configuration objects
    - YAML file loading with environment variable overrides
    - Validation with meaningful error messages

Configuration Hierarchy (highest priority first):
    1. Environment variables (PHONOS_ENGINE, PHONOS_API_KEY_GOOGLE, ...)
    2. YAML config file (config/settings.yaml, or PHONOS_SETTINGS)
    3. Defaults class values

Example settings.yaml:
    engine: espeak

    storage:
      base_dir: ./storage
      upload_path: /media
      file_expiry_days: 28

    google:
      endpoint: https://texttospeech.googleapis.com/v1/
      api_key: ""

    rendering:
      synchronous: false

    logging:
      level: 2  # NORMAL
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional
import os
import yaml


class ConfigValidationError(Exception):
    """
    Raised when configuration validation fails.

    Thrown when a configuration value is outside acceptable bounds, of the
    wrong type, or when the settings file cannot be parsed.
    """
    pass


class Defaults:
    """
    Centralized default configuration values.

    Sections:
        - Engine: Which TTS backend renders audio
        - Storage: Blob store layout and expiry
        - Backends: espeak, Google Cloud TTS, Larynx
        - HTTP: Outbound proxy and timeouts
        - Encoder/Sandbox: lame and the process wrapper
        - Caches: Error records and language lists
        - Jobs: Background generation workers
        - Rendering: Request-time behaviour
        - Logging: Log level
    """

    # ─────────────────────────────────────────────────────────────────────────
    # Engine
    # ─────────────────────────────────────────────────────────────────────────
    ENGINE = "espeak"

    # ─────────────────────────────────────────────────────────────────────────
    # Storage Settings
    # ─────────────────────────────────────────────────────────────────────────
    STORAGE_BASE_DIR = "./storage"      # Root of the blob store
    STORAGE_UPLOAD_PATH = "/media"      # Public URL prefix for rendered files
    STORAGE_FORMAT_VERSION = 1          # Bump to invalidate every cached file
    STORAGE_FILE_EXPIRY_DAYS = 28       # Base lifetime stamped on each file
    STORAGE_EXPIRY_JITTER_FLOOR = 0.8   # Expiry drawn from [floor*ttl, ttl]

    # ─────────────────────────────────────────────────────────────────────────
    # Backends
    # ─────────────────────────────────────────────────────────────────────────
    ESPEAK_PATH = "espeak"
    GOOGLE_ENDPOINT = "https://texttospeech.googleapis.com/v1/"
    GOOGLE_MIN_FILE_SIZE = 1100         # Smaller responses are silence
    LARYNX_ENDPOINT = "http://localhost:5002/api/tts"
    LARYNX_VOICE = "en-us/blizzard_lessac-glow_tts"
    MIN_FILE_SIZE = 1                   # Anything non-empty is accepted

    # ─────────────────────────────────────────────────────────────────────────
    # HTTP
    # ─────────────────────────────────────────────────────────────────────────
    HTTP_TIMEOUT_S = 10.0

    # ─────────────────────────────────────────────────────────────────────────
    # Encoder and process sandbox
    # ─────────────────────────────────────────────────────────────────────────
    ENCODER_LAME_PATH = "lame"
    SANDBOX_TIMEOUT_S = 30.0

    # ─────────────────────────────────────────────────────────────────────────
    # Ephemeral caches
    # ─────────────────────────────────────────────────────────────────────────
    ERROR_CACHE_MAX_ITEMS = 10000
    ERROR_CACHE_TTL_SECONDS = 86400     # Failed renders are not retried for a day
    LANGUAGES_CACHE_TTL_SECONDS = 86400 * 30

    # ─────────────────────────────────────────────────────────────────────────
    # Jobs
    # ─────────────────────────────────────────────────────────────────────────
    JOBS_MAX_WORKERS = 2

    # ─────────────────────────────────────────────────────────────────────────
    # Rendering
    # ─────────────────────────────────────────────────────────────────────────
    RENDERING_ENABLED = True
    RENDERING_SYNCHRONOUS = False
    RENDERING_MAX_IPA_LENGTH = 300       # Bytes of UTF-8
    RENDERING_DEFAULT_LANGUAGE = "en"

    # ─────────────────────────────────────────────────────────────────────────
    # Logging
    # ─────────────────────────────────────────────────────────────────────────
    LOGGING_LEVEL = 2                   # 1=MINIMAL, 2=NORMAL, 3=VERBOSE, 4=DEBUG


_ENGINES = ("espeak", "google", "larynx")


@dataclass
class StorageConfig:
    """
    Blob store layout and file expiry.

    Files live under ``{base_dir}/phonos-render/{k0}/{k1}/`` and are served
    from ``{upload_path}/{k0}/{k1}/``.
    """
    base_dir: str = Defaults.STORAGE_BASE_DIR
    upload_path: str = Defaults.STORAGE_UPLOAD_PATH
    format_version: int = Defaults.STORAGE_FORMAT_VERSION
    file_expiry_days: int = Defaults.STORAGE_FILE_EXPIRY_DAYS
    expiry_jitter_floor: float = Defaults.STORAGE_EXPIRY_JITTER_FLOOR


@dataclass
class EspeakConfig:
    path: str = Defaults.ESPEAK_PATH


@dataclass
class GoogleConfig:
    endpoint: str = Defaults.GOOGLE_ENDPOINT
    api_key: str = ""
    min_file_size: int = Defaults.GOOGLE_MIN_FILE_SIZE


@dataclass
class LarynxConfig:
    endpoint: str = Defaults.LARYNX_ENDPOINT
    voice: str = Defaults.LARYNX_VOICE


@dataclass
class HttpConfig:
    """Outbound HTTP settings shared by the HTTP backends."""
    proxy: Optional[str] = None
    timeout_s: float = Defaults.HTTP_TIMEOUT_S


@dataclass
class EncoderConfig:
    lame_path: str = Defaults.ENCODER_LAME_PATH


@dataclass
class SandboxConfig:
    """
    External process settings.

    ``wrapper`` is an argv prefix applied to every command, for example
    ``["firejail", "--quiet", "--net=none"]``. Empty means run directly.
    """
    wrapper: List[str] = field(default_factory=list)
    timeout_s: float = Defaults.SANDBOX_TIMEOUT_S


@dataclass
class ErrorCacheConfig:
    max_items: int = Defaults.ERROR_CACHE_MAX_ITEMS
    ttl_seconds: int = Defaults.ERROR_CACHE_TTL_SECONDS


@dataclass
class LanguagesConfig:
    cache_ttl_seconds: int = Defaults.LANGUAGES_CACHE_TTL_SECONDS


@dataclass
class JobsConfig:
    max_workers: int = Defaults.JOBS_MAX_WORKERS


@dataclass
class RenderingConfig:
    """
    Request-time rendering behaviour.

    When ``synchronous`` is false a missing file is queued for background
    generation and the caller gets the URL immediately.
    """
    enabled: bool = Defaults.RENDERING_ENABLED
    synchronous: bool = Defaults.RENDERING_SYNCHRONOUS
    max_ipa_length: int = Defaults.RENDERING_MAX_IPA_LENGTH
    default_language: str = Defaults.RENDERING_DEFAULT_LANGUAGE


@dataclass
class LoggingConfig:
    """
    Logging configuration.

    Log levels:
        1 = MINIMAL: Startup, shutdown, job failures
        2 = NORMAL: Request lifecycle, cache status (default)
        3 = VERBOSE: Backend timings, storage detail
        4 = DEBUG: SSML payloads, full tracing
    """
    level: int = Defaults.LOGGING_LEVEL


@dataclass
class ServiceConfig:
    """
    Validated configuration for the pronunciation service.

    Usage:
        settings = load_settings("config/settings.yaml")
        config = ServiceConfig.from_settings(settings)
        print(config.storage.upload_path)
    """
    engine: str = Defaults.ENGINE
    storage: StorageConfig = field(default_factory=StorageConfig)
    espeak: EspeakConfig = field(default_factory=EspeakConfig)
    google: GoogleConfig = field(default_factory=GoogleConfig)
    larynx: LarynxConfig = field(default_factory=LarynxConfig)
    http: HttpConfig = field(default_factory=HttpConfig)
    encoder: EncoderConfig = field(default_factory=EncoderConfig)
    sandbox: SandboxConfig = field(default_factory=SandboxConfig)
    error_cache: ErrorCacheConfig = field(default_factory=ErrorCacheConfig)
    languages: LanguagesConfig = field(default_factory=LanguagesConfig)
    jobs: JobsConfig = field(default_factory=JobsConfig)
    rendering: RenderingConfig = field(default_factory=RenderingConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @classmethod
    def from_settings(cls, settings: "Settings") -> "ServiceConfig":
        """
        Create ServiceConfig from Settings with validation.

        Args:
            settings: Raw Settings object loaded from YAML.

        Returns:
            Validated ServiceConfig instance.

        Raises:
            ConfigValidationError: If any value fails validation.
        """
        raw = settings.raw

        engine = str(raw.get("engine", Defaults.ENGINE)).lower()
        if engine not in _ENGINES:
            raise ConfigValidationError(
                f"engine must be one of {', '.join(_ENGINES)}, got {engine!r}"
            )

        # ─────────────────────────────────────────────────────────────────────
        # Storage
        # ─────────────────────────────────────────────────────────────────────
        storage_raw = raw.get("storage") or {}
        storage = StorageConfig(
            base_dir=str(storage_raw.get("base_dir", Defaults.STORAGE_BASE_DIR)),
            upload_path=str(storage_raw.get("upload_path", Defaults.STORAGE_UPLOAD_PATH)).rstrip("/"),
            format_version=int(storage_raw.get("format_version", Defaults.STORAGE_FORMAT_VERSION)),
            file_expiry_days=int(storage_raw.get("file_expiry_days", Defaults.STORAGE_FILE_EXPIRY_DAYS)),
            expiry_jitter_floor=float(storage_raw.get("expiry_jitter_floor", Defaults.STORAGE_EXPIRY_JITTER_FLOOR)),
        )
        cls._validate_positive("storage.format_version", storage.format_version)
        cls._validate_positive("storage.file_expiry_days", storage.file_expiry_days)
        cls._validate_range("storage.expiry_jitter_floor", storage.expiry_jitter_floor, 0.0, 1.0)

        # ─────────────────────────────────────────────────────────────────────
        # Backends
        # ─────────────────────────────────────────────────────────────────────
        espeak_raw = raw.get("espeak") or {}
        espeak = EspeakConfig(path=str(espeak_raw.get("path", Defaults.ESPEAK_PATH)))

        google_raw = raw.get("google") or {}
        google = GoogleConfig(
            endpoint=str(google_raw.get("endpoint", Defaults.GOOGLE_ENDPOINT)),
            api_key=str(google_raw.get("api_key") or ""),
            min_file_size=int(google_raw.get("min_file_size", Defaults.GOOGLE_MIN_FILE_SIZE)),
        )
        cls._validate_non_negative("google.min_file_size", google.min_file_size)

        larynx_raw = raw.get("larynx") or {}
        larynx = LarynxConfig(
            endpoint=str(larynx_raw.get("endpoint", Defaults.LARYNX_ENDPOINT)),
            voice=str(larynx_raw.get("voice", Defaults.LARYNX_VOICE)),
        )

        # ─────────────────────────────────────────────────────────────────────
        # HTTP, encoder and sandbox
        # ─────────────────────────────────────────────────────────────────────
        http_raw = raw.get("http") or {}
        http = HttpConfig(
            proxy=http_raw.get("proxy") or None,
            timeout_s=float(http_raw.get("timeout_s", Defaults.HTTP_TIMEOUT_S)),
        )
        cls._validate_positive("http.timeout_s", http.timeout_s)

        encoder_raw = raw.get("encoder") or {}
        encoder = EncoderConfig(lame_path=str(encoder_raw.get("lame_path", Defaults.ENCODER_LAME_PATH)))

        sandbox_raw = raw.get("sandbox") or {}
        wrapper = sandbox_raw.get("wrapper") or []
        if isinstance(wrapper, str):
            wrapper = wrapper.split()
        sandbox = SandboxConfig(
            wrapper=[str(part) for part in wrapper],
            timeout_s=float(sandbox_raw.get("timeout_s", Defaults.SANDBOX_TIMEOUT_S)),
        )
        cls._validate_positive("sandbox.timeout_s", sandbox.timeout_s)

        # ─────────────────────────────────────────────────────────────────────
        # Caches and jobs
        # ─────────────────────────────────────────────────────────────────────
        error_cache_raw = raw.get("error_cache") or {}
        error_cache = ErrorCacheConfig(
            max_items=int(error_cache_raw.get("max_items", Defaults.ERROR_CACHE_MAX_ITEMS)),
            ttl_seconds=int(error_cache_raw.get("ttl_seconds", Defaults.ERROR_CACHE_TTL_SECONDS)),
        )
        cls._validate_positive("error_cache.max_items", error_cache.max_items)
        cls._validate_positive("error_cache.ttl_seconds", error_cache.ttl_seconds)

        languages_raw = raw.get("languages") or {}
        languages = LanguagesConfig(
            cache_ttl_seconds=int(languages_raw.get("cache_ttl_seconds", Defaults.LANGUAGES_CACHE_TTL_SECONDS)),
        )
        cls._validate_positive("languages.cache_ttl_seconds", languages.cache_ttl_seconds)

        jobs_raw = raw.get("jobs") or {}
        jobs = JobsConfig(max_workers=int(jobs_raw.get("max_workers", Defaults.JOBS_MAX_WORKERS)))
        cls._validate_positive("jobs.max_workers", jobs.max_workers)

        # ─────────────────────────────────────────────────────────────────────
        # Rendering
        # ─────────────────────────────────────────────────────────────────────
        rendering_raw = raw.get("rendering") or {}
        rendering = RenderingConfig(
            enabled=bool(rendering_raw.get("enabled", Defaults.RENDERING_ENABLED)),
            synchronous=bool(rendering_raw.get("synchronous", Defaults.RENDERING_SYNCHRONOUS)),
            max_ipa_length=int(rendering_raw.get("max_ipa_length", Defaults.RENDERING_MAX_IPA_LENGTH)),
            default_language=str(rendering_raw.get("default_language", Defaults.RENDERING_DEFAULT_LANGUAGE)),
        )
        cls._validate_positive("rendering.max_ipa_length", rendering.max_ipa_length)

        # ─────────────────────────────────────────────────────────────────────
        # Logging
        # ─────────────────────────────────────────────────────────────────────
        logging_raw = raw.get("logging") or {}
        log_level_raw = logging_raw.get("level", Defaults.LOGGING_LEVEL)

        # Handle string log levels (e.g., "INFO", "DEBUG")
        if isinstance(log_level_raw, str):
            level_map = {
                "MINIMAL": 1, "1": 1,
                "NORMAL": 2, "INFO": 2, "2": 2,
                "VERBOSE": 3, "3": 3,
                "DEBUG": 4, "TRACE": 4, "4": 4,
            }
            log_level = level_map.get(log_level_raw.upper(), Defaults.LOGGING_LEVEL)
        else:
            log_level = int(log_level_raw)

        logging_cfg = LoggingConfig(level=log_level)
        cls._validate_range("logging.level", logging_cfg.level, 1, 4)

        return cls(
            engine=engine,
            storage=storage,
            espeak=espeak,
            google=google,
            larynx=larynx,
            http=http,
            encoder=encoder,
            sandbox=sandbox,
            error_cache=error_cache,
            languages=languages,
            jobs=jobs,
            rendering=rendering,
            logging=logging_cfg,
        )

    @staticmethod
    def _validate_positive(name: str, value: int | float) -> None:
        """Validate that a value is positive (> 0)."""
        if value <= 0:
            raise ConfigValidationError(f"{name} must be positive, got {value}")

    @staticmethod
    def _validate_non_negative(name: str, value: int | float) -> None:
        """Validate that a value is non-negative (>= 0)."""
        if value < 0:
            raise ConfigValidationError(f"{name} must be non-negative, got {value}")

    @staticmethod
    def _validate_range(name: str, value: int | float, min_val: int | float, max_val: int | float) -> None:
        """Validate that a value is within a range [min_val, max_val]."""
        if not (min_val <= value <= max_val):
            raise ConfigValidationError(f"{name} must be between {min_val} and {max_val}, got {value}")


@dataclass(frozen=True)
class Settings:
    """
    Immutable settings container loaded from YAML.

    This is the raw settings object before validation. Use
    get_service_config() to get a validated ServiceConfig.
    """
    raw: Dict[str, Any]

    @property
    def engine_type(self) -> str:
        """Get the TTS backend name (espeak, google, larynx)."""
        return str(self.raw.get("engine", Defaults.ENGINE))

    @property
    def upload_path(self) -> str:
        return str((self.raw.get("storage") or {}).get("upload_path", Defaults.STORAGE_UPLOAD_PATH))

    def get_service_config(self) -> ServiceConfig:
        """
        Get validated ServiceConfig from these settings.

        Raises:
            ConfigValidationError: If validation fails.
        """
        return ServiceConfig.from_settings(self)


def _apply_env_overrides(raw: Dict[str, Any]) -> Dict[str, Any]:
    engine = os.getenv("PHONOS_ENGINE")
    if engine:
        raw["engine"] = engine

    api_key = os.getenv("PHONOS_API_KEY_GOOGLE")
    if api_key:
        raw.setdefault("google", {})["api_key"] = api_key

    proxy = os.getenv("PHONOS_API_PROXY")
    if proxy:
        raw.setdefault("http", {})["proxy"] = proxy

    return raw


def load_settings(path: str = "config/settings.yaml") -> Settings:
    """
    Load settings from a YAML configuration file.

    Environment variable overrides:
        - PHONOS_ENGINE: Override ``engine``
        - PHONOS_API_KEY_GOOGLE: Override ``google.api_key``
        - PHONOS_API_PROXY: Override ``http.proxy``

    Args:
        path: Path to the YAML configuration file.

    Returns:
        Settings object with loaded configuration.

    Raises:
        FileNotFoundError: If the settings file doesn't exist.
        ConfigValidationError: If the file is not a YAML mapping.
    """
    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(f"settings file not found: {p.resolve()}")

    with p.open("r", encoding="utf-8") as f:
        try:
            raw = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigValidationError(f"invalid YAML in {p}: {e}") from e

    if not isinstance(raw, dict):
        raise ConfigValidationError(f"settings file must contain a mapping, got {type(raw).__name__}")

    return Settings(raw=_apply_env_overrides(raw))


def load_settings_or_defaults(path: Optional[str] = None) -> Settings:
    """
    Load settings from ``path`` (or PHONOS_SETTINGS), falling back to an
    empty mapping plus env overrides when the file is absent.
    """
    path = path or os.getenv("PHONOS_SETTINGS", "config/settings.yaml")
    if Path(path).exists():
        return load_settings(path)
    return Settings(raw=_apply_env_overrides({}))
