"""TOML config loading for mathspan.toml."""

from __future__ import annotations

import tomllib
from dataclasses import dataclass, field
from pathlib import Path

CONFIG_NAME = "mathspan.toml"


@dataclass
class OutputConfig:
    indent: int | None = None
    color: bool = True


@dataclass
class MathspanConfig:
    output: OutputConfig = field(default_factory=OutputConfig)


def find_config(start_path: Path | None = None) -> Path:
    """Walk up directories to find mathspan.toml. Raises FileNotFoundError."""
    path = (start_path or Path.cwd()).resolve()
    if path.is_file():
        path = path.parent
    while True:
        candidate = path / CONFIG_NAME
        if candidate.exists():
            return candidate
        parent = path.parent
        if parent == path:
            raise FileNotFoundError(f"No {CONFIG_NAME} found in any parent directory")
        path = parent


def load_config(path: Path) -> MathspanConfig:
    """Parse a mathspan.toml file into a MathspanConfig."""
    with open(path, "rb") as f:
        data = tomllib.load(f)

    config = MathspanConfig()

    if "output" in data:
        out = data["output"]
        indent = out.get("indent")
        if indent is not None and (not isinstance(indent, int) or isinstance(indent, bool) or indent < 0):
            raise ValueError(f"{path}: output.indent must be a non-negative integer")
        color = out.get("color", True)
        if not isinstance(color, bool):
            raise ValueError(f"{path}: output.color must be true or false")
        config.output = OutputConfig(indent=indent, color=color)

    return config


def load_config_or_default(start_path: Path | None = None) -> MathspanConfig:
    """Load the nearest mathspan.toml, or the defaults if there is none."""
    try:
        return load_config(find_config(start_path))
    except FileNotFoundError:
        return MathspanConfig()
