"""Configuration helpers for the link insertion engine."""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict

import yaml


@dataclass(frozen=True)
class EngineConfig:
    """Typed wrapper around the engine configuration dictionary."""

    raw: Dict[str, Any] = field(default_factory=dict)

    def get(self, key: str, default: Any = None) -> Any:
        return self.raw.get(key, default)

    def retry_setting(self, key: str, default: Any = None) -> Any:
        retry = self.raw.get("retry", {})
        return retry.get(key, default)

    def cache_setting(self, key: str, default: Any = None) -> Any:
        cache = self.raw.get("cache", {})
        return cache.get(key, default)

    def model(self, key: str, default: Any = None) -> Any:
        models = self.raw.get("models", {})
        return models.get(key, default)


DEFAULTS: Dict[str, Any] = {
    "similarity_threshold": 0.2,
    "max_candidates": 30,
    "fetch_concurrency": 5,
    "fetch_timeout": 60.0,
    "model_timeout": 60.0,
    "retry": {
        "max_attempts": 3,
        "initial_delay": 1.0,
        "max_delay": 8.0,
    },
    "cache": {
        "max_entries": 200,
        "ttl": 3600.0,
    },
    "root_id": "root",
    "max_block_text_length": 4000,
    "links_per_1000_words": 4,
    "min_links": 2,
    "candidate_excerpt_chars": 900,
    "embedding_max_chars": 8000,
    "max_anchor_words": 6,
    "preserve_existing_links": True,
    "user_agent": "InlinksBot/1.0",
    "models": {
        "chat": "gpt-4o-mini",
        "embedding": "text-embedding-3-small",
        "embedding_dimensions": 1536,
    },
}


def load_config(path: str | Path | None = None) -> EngineConfig:
    """Load configuration from YAML, merging with defaults."""

    data: Dict[str, Any] = copy.deepcopy(DEFAULTS)

    if path is not None and Path(path).exists():
        with Path(path).open("r", encoding="utf-8") as stream:
            user = yaml.safe_load(stream) or {}
        merge_into(data, user)

    return EngineConfig(data)


def merge_into(base: Dict[str, Any], override: Dict[str, Any]) -> None:
    """Recursively merge override into base dict."""

    for key, value in override.items():
        if isinstance(value, dict) and isinstance(base.get(key), dict):
            merge_into(base[key], value)
        else:
            base[key] = value
