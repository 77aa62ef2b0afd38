"""Configuration system for cpu-residency."""

from dataclasses import dataclass, field, fields, is_dataclass
from pathlib import Path

import tomlkit


@dataclass
class CollectorConfig:
    """Where to read from and how to bucket."""

    proc_path: str = "/proc"  # Mount point of the proc filesystem
    # File that defines the frequency table (format reference for every thread)
    initial_time_in_state_path: str = "/proc/self/time_in_state"
    num_buckets: int = 8  # Requested bucket count (effective count may be lower)
    time_unit_millis: int = 10  # Milliseconds per time_in_state tick


@dataclass
class NamesConfig:
    """Fallback names used when a name file can't be read."""

    default_process_name: str = "unknown_process"
    default_thread_name: str = "unknown_thread"


@dataclass
class LoggingConfig:
    """Log file rotation."""

    log_max_bytes: int = 5 * 1024 * 1024  # Max log file size (5MB)
    log_backup_count: int = 3  # Number of backup log files to keep


def _dataclass_to_table(obj: object) -> tomlkit.items.Table:
    """Convert a dataclass instance to a tomlkit Table recursively."""
    table = tomlkit.table()
    for f in fields(obj):  # type: ignore[arg-type]
        value = getattr(obj, f.name)
        if is_dataclass(value) and not isinstance(value, type):
            table.add(f.name, _dataclass_to_table(value))
        else:
            table.add(f.name, value)
    return table


@dataclass
class Config:
    """Main configuration container."""

    collector: CollectorConfig = field(default_factory=CollectorConfig)
    names: NamesConfig = field(default_factory=NamesConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @property
    def config_dir(self) -> Path:
        """Configuration directory."""
        return Path.home() / ".config" / "cpu-residency"

    @property
    def config_path(self) -> Path:
        """Path to config file."""
        return self.config_dir / "config.toml"

    @property
    def state_dir(self) -> Path:
        """State directory for logs."""
        return Path.home() / ".local" / "state" / "cpu-residency"

    @property
    def log_path(self) -> Path:
        """JSON log path."""
        return self.state_dir / "cpu-residency.log"

    @property
    def proc_path(self) -> Path:
        """Proc filesystem mount point as a Path."""
        return Path(self.collector.proc_path)

    @property
    def initial_time_in_state_path(self) -> Path:
        """Frequency table file as a Path."""
        return Path(self.collector.initial_time_in_state_path)

    def save(self, path: Path | None = None) -> None:
        """Save config to TOML file."""
        path = path or self.config_path
        path.parent.mkdir(parents=True, exist_ok=True)

        doc = tomlkit.document()
        for name in ("collector", "names", "logging"):
            doc.add(name, _dataclass_to_table(getattr(self, name)))
            doc.add(tomlkit.nl())

        path.write_text(tomlkit.dumps(doc))

    @classmethod
    def load(cls, path: Path | None = None) -> "Config":
        """Load config from TOML file, returning defaults for missing values.

        All defaults come from the dataclass definitions, so Config() and
        Config.load() of a missing file are identical.

        Raises:
            ValueError: If the file can't be parsed or holds invalid values.
        """
        defaults = cls()
        path = path or defaults.config_path
        if not path.exists():
            return defaults

        try:
            with open(path) as f:
                data = tomlkit.load(f)
        except tomlkit.exceptions.TOMLKitError as e:
            raise ValueError(f"Failed to parse config file {path}: {e}") from e

        return cls(
            collector=_load_collector_config(data.get("collector", {})),
            names=_load_names_config(data.get("names", {})),
            logging=_load_logging_config(data.get("logging", {})),
        )


def _get_int(data: dict, key: str, default: int, minimum: int) -> int:
    """Read an integer option, rejecting other types and values below minimum."""
    value = data.get(key, default)
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"{key} must be an integer, got {value!r}")
    if value < minimum:
        raise ValueError(f"{key} must be >= {minimum}, got {value}")
    return int(value)


def _get_str(data: dict, key: str, default: str) -> str:
    """Read a string option, rejecting other types."""
    value = data.get(key, default)
    if not isinstance(value, str):
        raise ValueError(f"{key} must be a string, got {value!r}")
    return str(value)


def _load_collector_config(data: dict) -> CollectorConfig:
    """Load collector config from TOML data, using dataclass defaults for missing fields."""
    defaults = CollectorConfig()
    return CollectorConfig(
        proc_path=_get_str(data, "proc_path", defaults.proc_path),
        initial_time_in_state_path=_get_str(
            data, "initial_time_in_state_path", defaults.initial_time_in_state_path
        ),
        num_buckets=_get_int(data, "num_buckets", defaults.num_buckets, 1),
        time_unit_millis=_get_int(data, "time_unit_millis", defaults.time_unit_millis, 1),
    )


def _load_names_config(data: dict) -> NamesConfig:
    defaults = NamesConfig()
    return NamesConfig(
        default_process_name=_get_str(
            data, "default_process_name", defaults.default_process_name
        ),
        default_thread_name=_get_str(data, "default_thread_name", defaults.default_thread_name),
    )


def _load_logging_config(data: dict) -> LoggingConfig:
    defaults = LoggingConfig()
    return LoggingConfig(
        log_max_bytes=_get_int(data, "log_max_bytes", defaults.log_max_bytes, 1),
        log_backup_count=_get_int(data, "log_backup_count", defaults.log_backup_count, 0),
    )
