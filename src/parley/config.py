"""Runtime configuration loading.

Settings are resolved from, in order of precedence:
1. Environment variables (PARLEY_PROVIDER, PARLEY_AUTO_ACCEPT)
2. Project config (``parley.yaml`` in the working directory, or ``--config``)
3. User config (``~/.config/parley/config.yaml``)
4. Built-in defaults
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from ruamel.yaml import YAML
from ruamel.yaml.error import YAMLError

from parley.errors import ConfigError
from parley.observability.logging import get_logger
from parley.tools.policy import ConfirmationPolicy

log = get_logger(__name__)

DEFAULT_PROVIDER = "openai/gpt-4o-mini"
DEFAULT_SYSTEM_PROMPT = "You are a helpful assistant. Use the available tools when they help."
PROJECT_CONFIG_NAME = "parley.yaml"

# XDG-compliant default config directory
_DEFAULT_CONFIG_DIR = Path.home() / ".config" / "parley"

_TRUE_VALUES = frozenset({"1", "true", "yes", "on"})
_FALSE_VALUES = frozenset({"0", "false", "no", "off", ""})


@dataclass
class RuntimeConfig:
    """Settings for an interactive agent session.

    Attributes:
        provider: Provider string such as ``"openai/gpt-4o"``.
        system_prompt: Instruction stored as the first message.
        initial_user_messages: User turns seeded before the first prompt.
        auto_accept_all: Skip confirmation for every tool call.
        max_steps: Optional cap on automatic steps per turn.
        policy: Effect and tool-name tables that always need confirmation.
        builtin_tools: Offer the built-in file and shell tools.
    """

    provider: str = DEFAULT_PROVIDER
    system_prompt: str = DEFAULT_SYSTEM_PROMPT
    initial_user_messages: list[str] = field(default_factory=list)
    auto_accept_all: bool = False
    max_steps: int | None = None
    policy: ConfirmationPolicy = field(default_factory=ConfirmationPolicy)
    builtin_tools: bool = True
    source: Path | None = None

    def effective_provider(self) -> str:
        """Provider after applying the PARLEY_PROVIDER override."""
        return os.getenv("PARLEY_PROVIDER") or self.provider

    def effective_auto_accept(self) -> bool:
        """Auto-accept flag after applying the PARLEY_AUTO_ACCEPT override.

        Raises:
            ConfigError: If the variable holds something that isn't a boolean.
        """
        raw = os.getenv("PARLEY_AUTO_ACCEPT")
        if raw is None:
            return self.auto_accept_all
        value = raw.strip().lower()
        if value in _TRUE_VALUES:
            return True
        if value in _FALSE_VALUES:
            return False
        raise ConfigError(f"PARLEY_AUTO_ACCEPT must be a boolean, got {raw!r}")

    @classmethod
    def from_dict(cls, data: dict[str, Any], source: Path | None = None) -> RuntimeConfig:
        """Create config from dictionary.

        Args:
            data: Parsed YAML mapping. Recognized keys are ``provider``,
                ``system_prompt``, ``initial_user_messages``,
                ``auto_accept_all``, ``max_steps``, ``builtin_tools`` and a
                ``confirmation`` mapping for the policy tables.
            source: File the data was read from, used in error messages.

        Raises:
            ConfigError: If a value has the wrong type.
        """
        provider = data.get("provider", DEFAULT_PROVIDER)
        if not isinstance(provider, str) or not provider:
            raise ConfigError(f"provider must be a non-empty string, got {provider!r}", source)

        system_prompt = data.get("system_prompt", DEFAULT_SYSTEM_PROMPT)
        if not isinstance(system_prompt, str):
            raise ConfigError("system_prompt must be a string", source)

        initial = data.get("initial_user_messages") or []
        if not isinstance(initial, list) or not all(isinstance(m, str) for m in initial):
            raise ConfigError("initial_user_messages must be a list of strings", source)

        auto_accept = data.get("auto_accept_all", False)
        builtin_tools = data.get("builtin_tools", True)
        for key, value in (("auto_accept_all", auto_accept), ("builtin_tools", builtin_tools)):
            if not isinstance(value, bool):
                raise ConfigError(f"{key} must be true or false, got {value!r}", source)

        max_steps = data.get("max_steps")
        if max_steps is not None and (
            isinstance(max_steps, bool) or not isinstance(max_steps, int) or max_steps < 1
        ):
            raise ConfigError(f"max_steps must be a positive integer, got {max_steps!r}", source)

        confirmation = data.get("confirmation") or {}
        if not isinstance(confirmation, dict):
            raise ConfigError("confirmation must be a mapping", source)
        try:
            policy = ConfirmationPolicy.from_dict(dict(confirmation))
        except ValueError as e:
            raise ConfigError(str(e), source) from e

        return cls(
            provider=provider,
            system_prompt=system_prompt,
            initial_user_messages=list(initial),
            auto_accept_all=auto_accept,
            max_steps=max_steps,
            policy=policy,
            builtin_tools=builtin_tools,
            source=source,
        )


def _read_yaml(path: Path) -> dict[str, Any]:
    yaml = YAML(typ="safe")
    try:
        with path.open("r", encoding="utf-8") as f:
            data = yaml.load(f)
    except OSError as e:
        raise ConfigError(f"Cannot read file: {e}", path) from e
    except YAMLError as e:
        raise ConfigError(f"Invalid YAML: {e}", path) from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError("Top level must be a mapping", path)
    return dict(data)


def load_runtime_config(
    path: Path | None = None,
    user_config_dir: Path | None = None,
) -> RuntimeConfig:
    """Load runtime configuration.

    Args:
        path: Explicit config file. Must exist when given.
        user_config_dir: Override the user config directory (for testing).
            Defaults to ~/.config/parley/.

    Returns:
        RuntimeConfig from the first file found, or defaults if none exists.

    Raises:
        ConfigError: If a config file cannot be read or is malformed.
    """
    if path is not None:
        if not path.exists():
            raise ConfigError("File not found", path)
        candidates = [path]
    else:
        config_dir = user_config_dir or _DEFAULT_CONFIG_DIR
        candidates = [Path.cwd() / PROJECT_CONFIG_NAME, config_dir / "config.yaml"]

    for candidate in candidates:
        if candidate.exists():
            config = RuntimeConfig.from_dict(_read_yaml(candidate), source=candidate)
            log.debug("runtime_config_loaded", path=str(candidate))
            return config

    log.debug("runtime_config_defaults")
    return RuntimeConfig()
