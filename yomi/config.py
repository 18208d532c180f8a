from __future__ import annotations

import json
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any, Optional, Tuple

from .align import DEFAULT_AUDIO_DURATION

DEFAULT_PORT = 3000


@dataclass(frozen=True)
class ServiceConfig:
    vocabulary_paths: Tuple[str, ...] = ()
    dictionary_dir: Optional[str] = None
    language_code: str = "ja-JP"
    voice_name: str = "ja-JP-Standard-A"
    audio_encoding: str = "MP3"
    speaking_rate: float = 1.0
    pitch: float = 0.0
    default_audio_duration: float = DEFAULT_AUDIO_DURATION
    synthesis_timeout: Optional[float] = 30.0
    probe_audio_duration: bool = False
    host: str = "0.0.0.0"
    port: int = DEFAULT_PORT
    cors_origins: Tuple[str, ...] = ("*",)

    @property
    def dictionary_path(self) -> Optional[Path]:
        if not self.dictionary_dir:
            return None
        return Path(self.dictionary_dir)


_PATH_LIST_KEYS = {"vocabulary_paths"}
_STR_LIST_KEYS = {"cors_origins"}
_FLOAT_KEYS = {"speaking_rate", "pitch", "default_audio_duration"}


def _load_json(path: Path) -> dict:
    data = json.loads(path.read_text(encoding="utf-8"))
    if not isinstance(data, dict):
        raise ValueError(f"Config must be a JSON object: {path}")
    return data


def _as_list(value: Any, key: str) -> list:
    if isinstance(value, str):
        return [value]
    if not isinstance(value, list):
        raise ValueError(f"{key} must be a string or a list of strings.")
    return [str(item) for item in value]


def _resolve_path(raw: str, base_dir: Path) -> str:
    candidate = Path(raw).expanduser()
    if not candidate.is_absolute():
        candidate = (base_dir / candidate).resolve()
    return str(candidate)


def config_from_dict(data: dict, base_dir: Optional[Path] = None) -> ServiceConfig:
    known = {f.name for f in fields(ServiceConfig)}
    unknown = sorted(set(data) - known)
    if unknown:
        raise ValueError(f"Unknown config keys: {', '.join(unknown)}")

    base_dir = base_dir or Path.cwd()
    values: dict = {}
    for key, value in data.items():
        if key in _PATH_LIST_KEYS:
            values[key] = tuple(
                _resolve_path(item, base_dir) for item in _as_list(value, key)
            )
        elif key in _STR_LIST_KEYS:
            values[key] = tuple(_as_list(value, key))
        elif key == "dictionary_dir":
            values[key] = _resolve_path(str(value), base_dir) if value else None
        elif key in _FLOAT_KEYS:
            values[key] = float(value)
        elif key == "synthesis_timeout":
            values[key] = float(value) if value is not None else None
        elif key == "port":
            values[key] = int(value)
        elif key == "probe_audio_duration":
            values[key] = bool(value)
        else:
            values[key] = str(value)

    config = ServiceConfig(**values)
    if config.default_audio_duration <= 0:
        raise ValueError("default_audio_duration must be > 0.")
    if config.synthesis_timeout is not None and config.synthesis_timeout <= 0:
        raise ValueError("synthesis_timeout must be > 0 or null.")
    return config


def load_config(path: Optional[Path] = None) -> ServiceConfig:
    if path is None:
        return ServiceConfig()
    if not path.exists():
        raise FileNotFoundError(f"Config not found: {path}")
    return config_from_dict(_load_json(path), base_dir=path.parent)


def apply_overrides(config: ServiceConfig, **overrides: Any) -> ServiceConfig:
    """Return ``config`` with every non-``None`` override applied."""
    changes = {key: value for key, value in overrides.items() if value is not None}
    if not changes:
        return config
    return replace(config, **changes)
