from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from repocards.features import DEFAULT_FEATURE_TABLE, FeatureTable
from repocards.paths import CONFIG_PATH

LOGGER = logging.getLogger(__name__)

DEFAULT_SYSTEM_PROMPT = (
    "You group the files of a software repository into documentation cards. "
    'Respond with a JSON object of the form {"cards": [...]}.'
)
DEFAULT_JSON_ONLY_SUFFIX = "Return ONLY valid JSON."


class PolicyLoader:
    """Utility for loading and caching policy files."""

    _cache: Dict[Path, Dict] = {}

    @classmethod
    def load(cls, path: Path) -> Dict:
        resolved = path.resolve()
        if resolved in cls._cache:
            return cls._cache[resolved]
        with open(resolved, "r", encoding="utf-8") as handle:
            data = yaml.safe_load(handle) or {}
        if not isinstance(data, dict):
            raise ValueError(f"Policy file {resolved} must contain a mapping")
        cls._cache[resolved] = data
        return data

    @classmethod
    def clear(cls) -> None:
        cls._cache.clear()


@dataclass(frozen=True)
class ProviderSettings:
    model: str = "gpt-4o-mini"
    temperature: float = 0.0
    timeout_seconds: float = 60.0
    max_snippet_chars: int = 1200
    api_key: Optional[str] = None
    base_url: Optional[str] = None


@dataclass(frozen=True)
class QualitySettings:
    similarity_threshold: float = 0.85
    high_similarity_threshold: float = 0.95
    min_description_length: int = 10
    min_blocks_per_card: int = 2
    max_files_per_screen: int = 25
    max_iterations: int = 5


@dataclass(frozen=True)
class PromptSettings:
    system: str = DEFAULT_SYSTEM_PROMPT
    json_only_suffix: str = DEFAULT_JSON_ONLY_SUFFIX
    user_header: str = "Repository files (path | layer | feature | size):"


@dataclass(frozen=True)
class PipelineSettings:
    provider: ProviderSettings = field(default_factory=ProviderSettings)
    quality: QualitySettings = field(default_factory=QualitySettings)
    prompt: PromptSettings = field(default_factory=PromptSettings)
    features: FeatureTable = field(default_factory=lambda: DEFAULT_FEATURE_TABLE)


def _section(policy: Dict[str, Any], name: str) -> Dict[str, Any]:
    value = policy.get(name) or {}
    if not isinstance(value, dict):
        raise ValueError(f"Config section '{name}' must be a mapping")
    return value


def settings_from_policy(policy: Dict[str, Any], env: Optional[Dict[str, str]] = None) -> PipelineSettings:
    """Build settings from a parsed policy mapping plus environment overrides."""

    env = os.environ if env is None else env
    provider = _section(policy, "provider")
    quality = _section(policy, "quality")
    prompt = _section(policy, "prompt")

    defaults = ProviderSettings()
    provider_settings = ProviderSettings(
        model=env.get("REPOCARDS_MODEL") or str(provider.get("model", defaults.model)),
        temperature=float(provider.get("temperature", defaults.temperature)),
        timeout_seconds=float(env.get("REPOCARDS_TIMEOUT") or provider.get("timeout_seconds", defaults.timeout_seconds)),
        max_snippet_chars=int(provider.get("max_snippet_chars", defaults.max_snippet_chars)),
        # GROK_API_KEY wins when both are set.
        api_key=env.get("GROK_API_KEY") or env.get("OPENAI_API_KEY") or None,
        base_url=env.get("OPENAI_BASE_URL") or provider.get("base_url") or None,
    )

    q = QualitySettings()
    quality_settings = QualitySettings(
        similarity_threshold=float(quality.get("similarity_threshold", q.similarity_threshold)),
        high_similarity_threshold=float(quality.get("high_similarity_threshold", q.high_similarity_threshold)),
        min_description_length=int(quality.get("min_description_length", q.min_description_length)),
        min_blocks_per_card=int(quality.get("min_blocks_per_card", q.min_blocks_per_card)),
        max_files_per_screen=int(quality.get("max_files_per_screen", q.max_files_per_screen)),
        max_iterations=int(quality.get("max_iterations", q.max_iterations)),
    )
    if quality_settings.high_similarity_threshold < quality_settings.similarity_threshold:
        raise ValueError("high_similarity_threshold must not be below similarity_threshold")
    if quality_settings.max_iterations < 1:
        raise ValueError("max_iterations must be at least 1")

    p = PromptSettings()
    prompt_settings = PromptSettings(
        system=str(prompt.get("system", p.system)).strip(),
        json_only_suffix=str(prompt.get("json_only_suffix", p.json_only_suffix)),
        user_header=str(prompt.get("user_header", p.user_header)),
    )

    features = DEFAULT_FEATURE_TABLE
    if policy.get("features"):
        features = FeatureTable.from_config(policy["features"])
        LOGGER.debug("Loaded %s feature entries from config", len(features))

    return PipelineSettings(
        provider=provider_settings,
        quality=quality_settings,
        prompt=prompt_settings,
        features=features,
    )


def load_settings(path: str | Path | None = None, env: Optional[Dict[str, str]] = None) -> PipelineSettings:
    """Load settings from ``path`` (or ``$REPOCARDS_CONFIG`` / the bundled policy).

    A missing default policy file is not an error: in-code defaults apply.
    An explicitly requested file must exist.
    """

    env = os.environ if env is None else env
    explicit = path or env.get("REPOCARDS_CONFIG")
    policy_path = Path(explicit) if explicit else CONFIG_PATH
    if not policy_path.exists():
        if explicit:
            raise FileNotFoundError(f"Config file not found: {policy_path}")
        LOGGER.debug("No policy file at %s; using defaults", policy_path)
        return settings_from_policy({}, env)
    return settings_from_policy(PolicyLoader.load(policy_path), env)
