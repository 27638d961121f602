"""
Settings for rl.

Values come from, lowest priority first: dataclass defaults, the user file
(~/.config/rl/config.toml), a project file in the working directory
(rl.toml, else .rlrc), a file named on the command line, RL_* environment
variables, and finally explicit overrides passed to init_config().
"""
import os
import tomli
import tomli_w
from pathlib import Path
from typing import Dict, Any, Iterator, Optional
from dataclasses import dataclass, field, asdict, fields

ENV_PREFIX = "RL_"
MEMORY_DATABASE = ":memory:"
PROJECT_FILES = ("rl.toml", ".rlrc")

_TRUTHY = ("true", "1", "yes", "on")


def default_config_dir() -> Path:
    """Per-user configuration directory (~/.config/rl)."""
    return Path.home() / ".config" / "rl"


def _coerce(current: Any, raw: str) -> Any:
    """Convert an environment string to the type of the field's current value."""
    if isinstance(current, bool):
        return raw.strip().lower() in _TRUTHY
    if isinstance(current, int):
        return int(raw)
    if isinstance(current, float):
        return float(raw)
    return raw


@dataclass
class RlConfig:
    """
    Settings for the store, the CLI and logging.

    Attributes:
        database: Store file, "~" and $VARS allowed; ":memory:" for a
            throwaway store
        busy_timeout: Seconds to wait on a database locked by another process
        database_echo: Log every SQL statement
        display_timezone: IANA zone used when printing timestamps
        color_output: Colored terminal output
        default_limit: Rows shown by `rl ls` when --limit is absent; 0 is all
        export_pretty: Indent exported JSON
        log_level: Root logging level name
    """

    database: str = field(default="~/.config/rl/links.db")
    busy_timeout: float = field(default=5.0)
    database_echo: bool = field(default=False)

    display_timezone: str = field(default="America/New_York")
    color_output: bool = field(default=True)
    default_limit: int = field(default=0)

    export_pretty: bool = field(default=True)

    log_level: str = field(default="WARNING")

    @staticmethod
    def sources(config_file: Optional[Path] = None) -> Iterator[Path]:
        """Existing config files, in the order they are applied."""
        user_file = default_config_dir() / "config.toml"
        if user_file.exists():
            yield user_file

        project_file = next(
            (Path.cwd() / name for name in PROJECT_FILES if (Path.cwd() / name).exists()),
            None,
        )
        if project_file is not None:
            yield project_file

        if config_file and config_file.exists():
            yield config_file

    @classmethod
    def load(cls, config_file: Optional[Path] = None) -> "RlConfig":
        """
        Build a configuration from every source.

        Args:
            config_file: Extra file applied after the user and project files

        Returns:
            Merged configuration
        """
        config = cls()
        for path in cls.sources(config_file):
            config.update(cls._read(path))
        config.update_from_env(os.environ)
        config.database = config._expand(config.database)
        return config

    @staticmethod
    def _read(path: Path) -> Dict[str, Any]:
        with open(path, "rb") as f:
            return tomli.load(f)

    def update(self, data: Dict[str, Any]) -> None:
        """Set known fields from a mapping; other keys are ignored."""
        names = {f.name for f in fields(self)}
        for key, value in data.items():
            if key in names:
                setattr(self, key, value)

    def update_from_env(self, environ) -> None:
        """Apply RL_<FIELD> variables, converted to each field's type."""
        for f in fields(self):
            raw = environ.get(ENV_PREFIX + f.name.upper())
            if raw is not None:
                setattr(self, f.name, _coerce(getattr(self, f.name), raw))

    @staticmethod
    def _expand(database: str) -> str:
        if database == MEMORY_DATABASE:
            return database
        return os.path.expanduser(os.path.expandvars(database))

    def save(self, path: Optional[Path] = None):
        """
        Write this configuration as TOML.

        Args:
            path: Destination; the user config file if omitted
        """
        if path is None:
            path = default_config_dir() / "config.toml"

        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "wb") as f:
            tomli_w.dump(asdict(self), f)

    @property
    def is_memory(self) -> bool:
        return self.database == MEMORY_DATABASE

    def get_database_path(self) -> Path:
        """
        Absolute store path, relative paths resolved against the cwd.

        ":memory:" is returned unchanged.
        """
        path = Path(self.database)
        if self.is_memory or path.is_absolute():
            return path
        return Path.cwd() / path


_config: Optional[RlConfig] = None


def get_config(reload: bool = False, config_file: Optional[Path] = None) -> RlConfig:
    """
    Shared configuration, loaded on first use.

    Args:
        reload: Load again from files and environment
        config_file: Extra file passed to RlConfig.load
    """
    global _config
    if _config is None or reload:
        _config = RlConfig.load(config_file)
    return _config


def init_config(database: Optional[str] = None, **kwargs) -> RlConfig:
    """
    Apply command-line overrides to the shared configuration.

    Args:
        database: Store path from --db
        **kwargs: Field overrides; None means "not given"

    Returns:
        The shared configuration
    """
    config = get_config()
    if database:
        config.database = RlConfig._expand(database)
    config.update({key: value for key, value in kwargs.items() if value is not None})
    return config
