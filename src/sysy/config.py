"""TOML config loading for sysy.toml."""

from __future__ import annotations

import tomllib
from dataclasses import dataclass, field
from pathlib import Path

CONFIG_FILENAME = "sysy.toml"


@dataclass
class CheckConfig:
    enrich_messages: bool = True
    unused_variables: bool = True


@dataclass
class ServerConfig:
    source: str = "sysy"


@dataclass
class RefactorConfig:
    extract_variable_name: str = "temp_var"
    extract_function_name: str = "extracted"


@dataclass
class SysyConfig:
    check: CheckConfig = field(default_factory=CheckConfig)
    server: ServerConfig = field(default_factory=ServerConfig)
    refactor: RefactorConfig = field(default_factory=RefactorConfig)


def find_config(start_path: Path | None = None) -> Path:
    """Walk up directories to find sysy.toml. Raises FileNotFoundError."""
    path = (start_path or Path.cwd()).resolve()
    if path.is_file():
        path = path.parent
    while True:
        candidate = path / CONFIG_FILENAME
        if candidate.exists():
            return candidate
        parent = path.parent
        if parent == path:
            raise FileNotFoundError(f"No {CONFIG_FILENAME} found in any parent directory")
        path = parent


def load_config(path: Path) -> SysyConfig:
    """Parse a sysy.toml file into a SysyConfig."""
    with open(path, "rb") as f:
        data = tomllib.load(f)

    config = SysyConfig()

    if "check" in data:
        chk = data["check"]
        config.check = CheckConfig(
            enrich_messages=chk.get("enrich_messages", True),
            unused_variables=chk.get("unused_variables", True),
        )

    if "server" in data:
        srv = data["server"]
        config.server = ServerConfig(
            source=srv.get("source", "sysy"),
        )

    if "refactor" in data:
        ref = data["refactor"]
        config.refactor = RefactorConfig(
            extract_variable_name=ref.get("extract_variable_name", "temp_var"),
            extract_function_name=ref.get("extract_function_name", "extracted"),
        )

    return config


def config_for(path: Path | None) -> SysyConfig:
    """Load the nearest sysy.toml above ``path``, or defaults if there is none."""
    try:
        return load_config(find_config(path))
    except FileNotFoundError:
        return SysyConfig()
