"""Configuration system for procsnap."""

from dataclasses import dataclass, field, fields, is_dataclass
from pathlib import Path

import tomlkit

VALID_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass
class ScanConfig:
    """Process scan configuration."""

    scope: str = "user"  # all, global, system or user
    workers: int = 0  # 0 = one worker per logical CPU
    proc_root: str = "/proc"


@dataclass
class TUIConfig:
    """Viewer configuration."""

    refresh_interval: float = 2.0  # Seconds between scans
    command_truncate_length: int = 50


@dataclass
class LoggingConfig:
    """Log file configuration."""

    level: str = "INFO"
    max_bytes: int = 5 * 1024 * 1024  # Max log file size (5MB)
    backup_count: int = 3  # Number of backup log files to keep


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

    scan: ScanConfig = field(default_factory=ScanConfig)
    tui: TUIConfig = field(default_factory=TUIConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @property
    def config_dir(self) -> Path:
        """Configuration directory."""
        return Path.home() / ".config" / "procsnap"

    @property
    def config_path(self) -> Path:
        """Path to config file."""
        return self.config_dir / "config.toml"

    @property
    def state_dir(self) -> Path:
        """State directory for logs."""
        return Path.home() / ".local" / "state" / "procsnap"

    @property
    def log_path(self) -> Path:
        return self.state_dir / "procsnap.log"

    def save(self, path: Path | None = None) -> None:
        """Save config to TOML file."""
        path = path or self.config_path
        path.parent.mkdir(parents=True, exist_ok=True)

        doc = tomlkit.document()
        for name in ("scan", "tui", "logging"):
            doc.add(name, _dataclass_to_table(getattr(self, name)))
            doc.add(tomlkit.nl())

        path.write_text(tomlkit.dumps(doc))

    @classmethod
    def load(cls, path: Path | None = None) -> "Config":
        """Load config from TOML file, returning defaults for missing values.

        Raises:
            ValueError: The file is not valid TOML or holds an invalid value.
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
            scan=_load_scan_config(data.get("scan", {})),
            tui=_load_tui_config(data.get("tui", {})),
            logging=_load_logging_config(data.get("logging", {})),
        )


def _load_scan_config(data: dict) -> ScanConfig:
    """Load scan config from TOML data, using dataclass defaults for missing fields."""
    defaults = ScanConfig()

    # Unknown scopes are left as-is; get_filter() falls back to "user" for them
    scope = str(data.get("scope", defaults.scope))

    workers = data.get("workers", defaults.workers)
    if workers < 0:
        raise ValueError(f"workers must be >= 0, got {workers}")

    return ScanConfig(
        scope=scope,
        workers=int(workers),
        proc_root=str(data.get("proc_root", defaults.proc_root)),
    )


def _load_tui_config(data: dict) -> TUIConfig:
    """Load TUI config from TOML data."""
    defaults = TUIConfig()

    refresh_interval = float(data.get("refresh_interval", defaults.refresh_interval))
    command_truncate_length = data.get(
        "command_truncate_length", defaults.command_truncate_length
    )
    if command_truncate_length < 1:
        raise ValueError(f"command_truncate_length must be >= 1, got {command_truncate_length}")

    return TUIConfig(
        refresh_interval=max(0.1, refresh_interval),
        command_truncate_length=int(command_truncate_length),
    )


def _load_logging_config(data: dict) -> LoggingConfig:
    """Load logging config from TOML data."""
    defaults = LoggingConfig()

    level = str(data.get("level", defaults.level)).upper()
    if level not in VALID_LOG_LEVELS:
        raise ValueError(f"Invalid log level: {level!r}. Must be one of {VALID_LOG_LEVELS}")

    return LoggingConfig(
        level=level,
        max_bytes=int(data.get("max_bytes", defaults.max_bytes)),
        backup_count=int(data.get("backup_count", defaults.backup_count)),
    )
