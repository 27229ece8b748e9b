"""Helpers for loading and overriding run configurations."""
from __future__ import annotations

import logging
import subprocess
import warnings
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from pydantic import ValidationError

from .errors import ConfigurationError
from .schema import RunConfig

__all__ = [
    "parse_override_value",
    "apply_overrides_dict",
    "read_overrides_file",
    "load_config",
    "configure_logging",
    "gather_git_info",
]

logger = logging.getLogger(__name__)


def parse_override_value(raw: str) -> Any:
    """Parse a CLI override value into a Python object."""

    text = raw.strip()
    lower = text.lower()
    if lower in {"true", "false"}:
        return lower == "true"
    if lower in {"none", "null"}:
        return None
    if lower == "nan":
        return float("nan")
    if lower in {"inf", "+inf", "+infinity", "infinity"}:
        return float("inf")
    if lower in {"-inf", "-infinity"}:
        return float("-inf")
    try:
        return int(text)
    except ValueError:
        try:
            return float(text)
        except ValueError:
            pass
    if text.startswith("[") and text.endswith("]"):
        inner = text[1:-1].strip()
        if not inner:
            return []
        return [parse_override_value(item) for item in inner.split(",")]
    if (text.startswith('"') and text.endswith('"')) or (text.startswith("'") and text.endswith("'")):
        return text[1:-1]
    return text


def apply_overrides_dict(payload: Dict[str, Any], overrides: Sequence[str]) -> Dict[str, Any]:
    """Apply dotted-path ``a.b.c=value`` overrides to a configuration dictionary."""

    if not overrides:
        return payload
    for item in overrides:
        key, sep, value_str = item.partition("=")
        if not sep:
            raise ConfigurationError(f"Invalid override '{item}'; expected path=value")
        parts = [segment for segment in key.strip().split(".") if segment]
        if not parts:
            raise ConfigurationError(f"Invalid override '{item}'; empty path")
        target: Any = payload
        for segment in parts[:-1]:
            if not isinstance(target, dict):
                raise ConfigurationError(
                    f"Cannot traverse into non-mapping for override '{item}' at '{segment}'"
                )
            if segment not in target or target[segment] is None:
                target[segment] = {}
            target = target[segment]
        if not isinstance(target, dict):
            raise ConfigurationError(f"Cannot set override '{item}'; target is not a mapping")
        target[parts[-1]] = parse_override_value(value_str)
    return payload


def read_overrides_file(path: Path) -> List[str]:
    """Return ``PATH=VALUE`` lines from ``path``, skipping blanks and ``#`` comments."""

    lines: List[str] = []
    with Path(path).open("r", encoding="utf-8") as fh:
        for raw in fh:
            text = raw.split("#", 1)[0].strip()
            if text:
                lines.append(text)
    return lines


def load_config(path: Optional[Path] = None, overrides: Optional[Sequence[str]] = None) -> RunConfig:
    """Load a YAML configuration file into a :class:`RunConfig` instance.

    ``path`` may be ``None`` to start from the defaults; ``overrides`` are
    applied to the raw mapping before validation.
    """

    from ruamel.yaml import YAML

    data: Any = {}
    if path is not None:
        yaml = YAML(typ="safe")
        source_path = Path(path).resolve()
        try:
            with source_path.open("r", encoding="utf-8") as fh:
                data = yaml.load(fh)
        except OSError as exc:
            raise ConfigurationError(f"cannot read configuration '{path}': {exc}") from exc
        if data is None:
            data = {}
    if not isinstance(data, dict):
        raise ConfigurationError("configuration root must be a mapping")
    if overrides:
        data = apply_overrides_dict(data, overrides)
    try:
        cfg = RunConfig(**data)
    except ValidationError as exc:
        raise ConfigurationError(f"invalid configuration: {exc}") from exc
    logger.debug("Loaded configuration from %s with %d override(s)", path, len(overrides or ()))
    return cfg


def configure_logging(level: int, suppress_warnings: bool = False) -> None:
    """Configure root logging and optionally silence Python warnings."""

    logging.basicConfig(level=level)
    root = logging.getLogger()
    root.setLevel(level)
    if suppress_warnings:
        warnings.filterwarnings("ignore")
    logging.captureWarnings(True)


def gather_git_info() -> Dict[str, Any]:
    """Return basic git metadata for provenance recording."""

    repo_root = Path(__file__).resolve().parents[1]
    info: Dict[str, Any] = {}
    try:
        info["commit"] = subprocess.check_output(
            ["git", "rev-parse", "HEAD"], cwd=repo_root, text=True, stderr=subprocess.DEVNULL
        ).strip()
    except (OSError, subprocess.CalledProcessError):
        info["commit"] = "unknown"
    try:
        status = subprocess.check_output(
            ["git", "status", "--short"], cwd=repo_root, text=True, stderr=subprocess.DEVNULL
        )
        info["dirty"] = bool(status.strip())
    except (OSError, subprocess.CalledProcessError):
        info["dirty"] = None
    return info
