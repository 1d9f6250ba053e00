"""Configuration management for Fleet Optimizer"""

import yaml
import json
from pathlib import Path
from typing import List, Optional
from pydantic import BaseModel, Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
import logging

from .exceptions import ConfigurationError

logger = logging.getLogger(__name__)


class AWSConfig(BaseModel):
    """AWS pricing catalog configuration"""
    enabled: bool = True
    region: str = "us-east-1"
    # The Pricing API is only served from a handful of regions
    pricing_region: str = "us-east-1"
    profile: Optional[str] = None
    access_key_id: Optional[SecretStr] = None
    secret_access_key: Optional[SecretStr] = None
    session_token: Optional[SecretStr] = None


class RetryConfig(BaseModel):
    """Backoff policy for catalog calls"""
    max_attempts: int = Field(default=3, ge=1)
    base_delay: float = Field(default=1.0, ge=0)
    multiplier: float = Field(default=1.5, ge=1)
    max_delay: float = Field(default=5.0, ge=0)


class CatalogConfig(BaseModel):
    """Instance catalog and price lookup timeouts"""
    list_timeout: float = 60.0
    price_timeout: float = 30.0
    max_candidates: int = 20
    max_fallback_candidates: int = 10


class CacheConfig(BaseModel):
    """Price cache configuration"""
    ttl: int = 86400  # 24 hours


class LLMConfig(BaseModel):
    """Optional text model used for explanations and price estimates"""
    enabled: bool = False
    url: str = "http://localhost:11434"
    model: str = "granite4:latest"
    provider: Optional[str] = None  # ollama, litellm; detected from url when unset
    api_key: Optional[SecretStr] = None
    explain_timeout: float = 15.0
    estimate_timeout: float = 10.0
    estimate_prices: bool = True

    @field_validator('provider')
    @classmethod
    def validate_provider(cls, provider: Optional[str]) -> Optional[str]:
        if provider is not None and provider.lower() not in ('ollama', 'litellm'):
            raise ValueError(f"Unsupported LLM provider: {provider}")
        return provider.lower() if provider else provider


class InventoryConfig(BaseModel):
    """Node pool snapshot source"""
    snapshot_path: Optional[Path] = None
    timeout: float = 30.0
    disruption_window_hours: int = 168  # 7 days


class LoggingConfig(BaseModel):
    """Logging configuration"""
    level: str = "INFO"
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    file: Optional[Path] = None
    max_bytes: int = 10485760  # 10MB
    backup_count: int = 5
    console: bool = True
    structured: bool = False


class Settings(BaseSettings):
    """Main application settings"""
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="FLEETOPT_",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
    )

    app_name: str = "Fleet Optimizer"
    environment: str = "development"
    debug: bool = False

    aws: AWSConfig = Field(default_factory=AWSConfig)
    retry: RetryConfig = Field(default_factory=RetryConfig)
    catalog: CatalogConfig = Field(default_factory=CatalogConfig)
    cache: CacheConfig = Field(default_factory=CacheConfig)
    llm: LLMConfig = Field(default_factory=LLMConfig)
    inventory: InventoryConfig = Field(default_factory=InventoryConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @classmethod
    def from_yaml(cls, path: Path) -> "Settings":
        return cls._load(Path(path), yaml.safe_load)

    @classmethod
    def from_json(cls, path: Path) -> "Settings":
        return cls._load(Path(path), json.load)

    @classmethod
    def from_file(cls, path: Path) -> "Settings":
        """Pick the parser from the file suffix; anything not YAML is read as JSON"""
        path = Path(path)
        if path.suffix in ('.yaml', '.yml'):
            return cls.from_yaml(path)
        return cls.from_json(path)

    @classmethod
    def _load(cls, path: Path, parse) -> "Settings":
        if not path.exists():
            logger.warning(f"Configuration file {path} not found, using defaults")
            return cls()
        try:
            with open(path, 'r') as f:
                data = parse(f)
        except (OSError, ValueError, yaml.YAMLError) as e:
            raise ConfigurationError(f"Cannot read configuration file {path}: {e}") from e
        if data is not None and not isinstance(data, dict):
            raise ConfigurationError(f"Configuration file {path} must contain a mapping")
        return cls(**(data or {}))

    def to_yaml(self, path: Path) -> None:
        self._dump(Path(path), lambda data, f: yaml.dump(data, f, default_flow_style=False))

    def to_json(self, path: Path) -> None:
        self._dump(Path(path), lambda data, f: json.dump(data, f, indent=2))

    def _dump(self, path: Path, write) -> None:
        # Only explicitly set values, so defaults can change between releases
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, 'w') as f:
            write(self.model_dump(mode='json', exclude_unset=True), f)

    def active_price_sources(self) -> List[str]:
        """Price tiers consulted after the cache, in lookup order"""
        sources = []
        if self.aws.enabled:
            sources.append("catalog-api")
        sources += ["static-table", "family-heuristic"]
        if self.llm.enabled and self.llm.estimate_prices:
            sources.append("text-model-estimate")
        return sources


CONFIG_SEARCH_PATHS = (
    Path.home() / ".fleetoptimizer" / "config.yaml",
    Path.home() / ".fleetoptimizer" / "config.json",
    Path("config.yaml"),
    Path("config.json"),
)

# Global settings instance
settings: Optional[Settings] = None


def find_config_file(paths=CONFIG_SEARCH_PATHS) -> Optional[Path]:
    return next((p for p in paths if p.exists()), None)


def get_settings() -> Settings:
    """Get global settings instance"""
    global settings
    if settings is None:
        path = find_config_file()
        if path is not None:
            settings = Settings.from_file(path)
            logger.info(f"Loaded configuration from {path}")
        else:
            settings = Settings()
            logger.debug("Using default configuration")
    return settings


def reload_settings(path: Optional[Path] = None) -> Settings:
    """Drop the cached settings and load them again"""
    global settings
    settings = None
    if path:
        settings = Settings.from_file(Path(path))
        return settings
    return get_settings()
