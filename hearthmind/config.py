from __future__ import annotations

import os
import tomllib
from dataclasses import asdict, dataclass, fields
from pathlib import Path
from typing import Any, Dict, List, Optional

USER_CONFIG_PATH = Path.home() / ".config" / "hearthmind" / "config.toml"
REPO_CONFIG_NAME = ".hearthmind.toml"

# Later entries win.
DEFAULT_CONFIG_LOCATIONS: List[Path] = [USER_CONFIG_PATH, Path(REPO_CONFIG_NAME)]

_ENV_KEYS = {
    "HEARTHMIND_PROVIDER": "provider",
    "HEARTHMIND_MODEL": "openai_model",
    "OPENAI_BASE_URL": "openai_base_url",
    "HEARTHMIND_SESSIONS_DIR": "sessions_dir",
}


class ConfigError(Exception):
    """Configuration file cannot be parsed or holds invalid values."""


@dataclass
class HearthConfig:
    provider: str = "openai"
    openai_model: str = "gpt-4o-mini"
    openai_base_url: Optional[str] = None
    openai_api_key: Optional[str] = None
    max_tool_cycles: int = 8
    rate_limit_retries: int = 3
    sessions_dir: Optional[str] = None

    @classmethod
    def load(
        cls,
        overrides: Optional[Dict[str, Any]] = None,
        locations: Optional[List[Path]] = None,
    ) -> "HearthConfig":
        data: Dict[str, Any] = {}
        for path in locations if locations is not None else DEFAULT_CONFIG_LOCATIONS:
            data.update(_read_toml(Path(path).expanduser()))
        for env, key in _ENV_KEYS.items():
            val = os.getenv(env)
            if val:
                data[key] = val
        if overrides:
            data.update({k: v for k, v in overrides.items() if v is not None})
        return cls.from_dict(data)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "HearthConfig":
        known = {f.name: f for f in fields(cls)}
        unknown = sorted(set(data) - set(known))
        if unknown:
            raise ConfigError(f"unknown config key(s): {', '.join(unknown)}")
        kwargs: Dict[str, Any] = {}
        for key, val in data.items():
            if key in {"max_tool_cycles", "rate_limit_retries"}:
                try:
                    val = int(val)
                except (TypeError, ValueError):
                    raise ConfigError(f"{key} must be an integer, got {val!r}") from None
                if val < 0:
                    raise ConfigError(f"{key} must be >= 0")
            kwargs[key] = val
        return cls(**kwargs)

    def redacted(self) -> Dict[str, Any]:
        d = asdict(self)
        if d.get("openai_api_key"):
            d["openai_api_key"] = "sk-…" + str(d["openai_api_key"])[-4:]
        return d


def _read_toml(path: Path) -> Dict[str, Any]:
    try:
        with path.open("rb") as fh:
            raw = tomllib.load(fh)
    except FileNotFoundError:
        return {}
    except (OSError, tomllib.TOMLDecodeError) as e:
        raise ConfigError(f"cannot read {path}: {e}") from e
    # Accept either top-level keys or a [hearthmind] table
    section = raw.get("hearthmind", raw)
    if not isinstance(section, dict):
        raise ConfigError(f"{path}: [hearthmind] must be a table")
    return dict(section)


def existing_config_paths(locations: Optional[List[Path]] = None) -> List[Path]:
    return [Path(p).expanduser() for p in (locations or DEFAULT_CONFIG_LOCATIONS) if Path(p).expanduser().is_file()]
