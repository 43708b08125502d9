# === FILE: ithbat/config.py ===
"""
Loading and validation of the Ithbat configuration.
Pydantic describes the schema; YAML and JSON files are accepted.
"""
from __future__ import annotations

import errno
import json
import os
from pathlib import Path
from typing import Any, Dict, Literal, Optional, Union

import yaml
from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    HttpUrl,
    SecretStr,
    ValidationError,
    field_validator,
    model_validator,
)

from ithbat.logger import logger

__all__ = [
    "TraversalProfile",
    "BrowserConfig",
    "SummarizerConfig",
    "ServerConfig",
    "IthbatConfig",
    "DEFAULT_PROFILES",
    "load_config",
]


class TraversalProfile(BaseModel):
    """Named bundle of crawl limits selected per request."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    name: str
    max_depth: int = Field(..., ge=0, description="Link hops followed from a search result.")
    max_pages: int = Field(..., ge=1, description="Hard limit of pages emitted per session.")
    sources: int = Field(10, ge=1, le=10, description="Search results used to seed the frontier.")


DEFAULT_PROFILES: Dict[str, TraversalProfile] = {
    "quick": TraversalProfile(name="quick", max_depth=0, max_pages=5, sources=5),
    "standard": TraversalProfile(name="standard", max_depth=1, max_pages=12, sources=8),
    "deep": TraversalProfile(name="deep", max_depth=3, max_pages=30, sources=10),
}


class BrowserConfig(BaseModel):
    """Headless browser rendering for sites that need JavaScript."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    enabled: bool = False
    timeout: float = Field(10.0, gt=0)


class SummarizerConfig(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    backend: Literal["digest", "openrouter"] = "digest"
    endpoint: HttpUrl = Field("https://openrouter.ai/api/v1/chat/completions", validate_default=True)
    model: str = "google/gemini-2.0-flash-lite-001"
    api_key: Optional[SecretStr] = Field(None, description="Falls back to $OPENROUTER_API_KEY.")
    timeout: float = Field(60.0, gt=0)


class ServerConfig(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    host: str = "127.0.0.1"
    port: int = Field(8080, ge=1, le=65535)


class IthbatConfig(BaseModel):
    """Process-wide configuration, read once at start-up."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    user_agent: str = Field(
        "Mozilla/5.0 (compatible; IthbatBot/1.0)", min_length=1, description="User-Agent header."
    )
    fetch_timeout: float = Field(10.0, gt=0, description="Timeout for one page fetch (seconds).")
    api_timeout: float = Field(5.0, gt=0, description="Timeout for structured-data APIs (seconds).")
    search_timeout: float = Field(10.0, gt=0, description="Timeout for one search call (seconds).")
    max_content_length: int = Field(4000, ge=1, description="Characters kept per page.")
    concurrency: int = Field(4, ge=1, le=32, description="Parallel fetches per expansion round.")
    rate_limit: float = Field(10.0, gt=0, description="Requests per second per fetcher.")
    retry_times: int = Field(1, ge=0, description="Retries on 429/5xx responses.")
    search_endpoint: HttpUrl = Field("https://html.duckduckgo.com/html/", validate_default=True)
    search_hint: str = Field("islamic quran hadith", description="Terms appended to every search.")
    trusted_only: bool = Field(True, description="Crawl trusted registry domains only.")
    default_profile: str = "standard"
    profiles: Dict[str, TraversalProfile] = Field(default_factory=lambda: dict(DEFAULT_PROFILES))
    browser: BrowserConfig = Field(default_factory=BrowserConfig)
    summarizer: SummarizerConfig = Field(default_factory=SummarizerConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)
    store_dir: Optional[Path] = Field(None, description="Conversation archive directory.")

    @field_validator("profiles", mode="before")
    def _fill_profile_names(cls, v: Any) -> Any:
        # allow `profiles: {quick: {max_depth: 0, max_pages: 5}}` without repeating the name
        if isinstance(v, dict):
            return {
                key: ({"name": key, **val} if isinstance(val, dict) and "name" not in val else val)
                for key, val in v.items()
            }
        return v

    @model_validator(mode="after")
    def _check_default_profile(self) -> IthbatConfig:
        if self.default_profile not in self.profiles:
            raise ValueError(
                f"default_profile {self.default_profile!r} is not one of {sorted(self.profiles)}"
            )
        return self

    def profile(self, name: Optional[str] = None) -> TraversalProfile:
        """Return the profile called *name* (or the default one)."""
        key = name or self.default_profile
        try:
            return self.profiles[key]
        except KeyError:
            raise KeyError(f"Unknown traversal profile {key!r}; expected one of {sorted(self.profiles)}") from None


_DEFAULT_CFG = Path("configs/default.yaml")


def _read_yaml(path: Path) -> dict[str, Any]:
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as exc:
        raise ValueError(f"Invalid YAML in {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise TypeError(f"Top level of YAML must be a mapping, got {type(data).__name__}")
    return data


def _read_json(path: Path) -> dict[str, Any]:
    try:
        data = json.loads(path.read_text(encoding="utf-8")) or {}
    except json.JSONDecodeError as exc:
        raise ValueError(f"Invalid JSON in {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise TypeError(f"Top level of JSON must be a mapping, got {type(data).__name__}")
    return data


def load_config(path: Union[str, Path, None]) -> IthbatConfig:
    """
    Read YAML or JSON and return a validated IthbatConfig.

    With *path* ``None`` the file ``configs/default.yaml`` is used when it
    exists, otherwise the built-in defaults. An explicit path that does not
    exist raises FileNotFoundError.
    """
    if path is None:
        if not _DEFAULT_CFG.exists():
            logger.debug("No %s found, using built-in defaults", _DEFAULT_CFG)
            return IthbatConfig()
        path_obj = _DEFAULT_CFG
    else:
        path_obj = Path(path).expanduser().resolve()
        if not path_obj.is_file():
            raise FileNotFoundError(errno.ENOENT, os.strerror(errno.ENOENT), str(path_obj))

    suffix = path_obj.suffix.lower()
    if suffix in (".yaml", ".yml"):
        data = _read_yaml(path_obj)
    elif suffix == ".json":
        data = _read_json(path_obj)
    else:
        raise ValueError(f"Unsupported config format: {suffix}")

    try:
        return IthbatConfig(**data)
    except ValidationError:
        logger.error("Invalid configuration in %s", path_obj)
        raise
