"""Configuration management for switchboard.

Loads YAML settings (settings.yaml) and environment variables (.env)
into a Config object. Property getters provide safe access with
defaults for the command prefix, owner and beta allow-lists, reply
theme, handler directory, error verbosity, logging, and the bulk
registration credentials.

Key classes:
    Config: Central configuration manager.

Key functions:
    get_config: Singleton accessor used by the entry point.
"""

import os
from pathlib import Path
from typing import Dict, List, Optional

import structlog
import yaml
from dotenv import load_dotenv

from .exceptions import ConfigurationError

logger = structlog.get_logger("switchboard.bot")

DEFAULT_COLORS = {
    "purple": "#9269ff",
    "red": "#ff6b6b",
    "blue": "#0a00ff",
    "yellow": "#fbff00",
    "green": "#00ff15",
    "gold": "#ffd700",
    "aqua": "#00ffff",
}


class Config:
    """Central configuration manager for switchboard.

    Loads settings.yaml and .env from the config directory. Read-only
    after __init__; the runtime receives the instance explicitly.

    Args:
        config_dir: Path to the config directory. Defaults to
            ``<repo_root>/config/``.
        settings: Pre-built settings dict. Skips settings.yaml when
            given (used by tests and embedding callers).
    """

    def __init__(
        self, config_dir: Optional[Path] = None, settings: Optional[dict] = None
    ):
        if config_dir is None:
            config_dir = Path(__file__).parent.parent / "config"
        self.config_dir = config_dir

        env_file = config_dir / ".env"
        if env_file.exists():
            load_dotenv(env_file)

        if settings is not None:
            self.settings = settings
        else:
            self.settings = self._load_yaml("settings.yaml")

    def _load_yaml(self, filename: str) -> dict:
        """Load a YAML configuration file."""
        filepath = self.config_dir / filename
        if filepath.exists():
            with open(filepath, "r", encoding="utf-8") as f:
                return yaml.safe_load(f) or {}
        return {}

    def _id_list(self, key: str) -> List[str]:
        values = self.settings.get(key, [])
        if not isinstance(values, list):
            logger.error("config_invalid_type", key=key, type=type(values).__name__)
            return []
        # Empty strings in the list are placeholders, not ids.
        return [str(v) for v in values if v not in (None, "")]

    def validate(self):
        """Validate critical settings at startup.

        Logs warnings/errors but does not raise -- local dispatch works
        without owners or registration credentials.
        """
        if not self.prefix.strip():
            logger.error("config_invalid_value", key="prefix", value=self.prefix)
        if not self.owners:
            logger.warning("no_owners_configured", msg="Owner-only commands are unreachable")
        threshold = self.settings.get("suggestion_threshold")
        if threshold is not None and not (
            isinstance(threshold, (int, float)) and 0 < threshold <= 1
        ):
            logger.error(
                "config_invalid_value",
                key="suggestion_threshold",
                value=threshold,
                valid="(0, 1]",
            )
        if not os.environ.get("BOT_TOKEN") or not os.environ.get("BOT_ID"):
            logger.warning(
                "registration_credentials_missing",
                msg="Slash commands will not be registered remotely",
            )

    @property
    def prefix(self) -> str:
        """Command prefix for message-style commands (default ``!``)."""
        return str(self.settings.get("prefix", "!"))

    @property
    def owners(self) -> List[str]:
        """User ids exempt from owner/disabled/beta checks."""
        return self._id_list("owners")

    @property
    def beta_users(self) -> List[str]:
        """User ids allowed to run beta-only commands."""
        return self._id_list("beta_users")

    @property
    def colors(self) -> Dict[str, str]:
        """Reply theme colors, user values merged over defaults."""
        theme = self.settings.get("theme") or {}
        return {**DEFAULT_COLORS, **(theme.get("colors") or {})}

    @property
    def handlers_dir(self) -> Path:
        """Root of the handler tree (``commands/`` and ``events/``).

        Defaults to the handlers bundled with the package.
        """
        configured = self.settings.get("handlers_dir")
        if configured:
            return Path(configured).expanduser()
        return Path(__file__).parent / "handlers"

    @property
    def verbose_errors(self) -> bool:
        """Show handler exception text to every user, not only owners."""
        return bool((self.settings.get("errors") or {}).get("verbose", False))

    @property
    def suggestion_threshold(self) -> float:
        """Minimum similarity for a "did you mean" hint (default 0.85)."""
        value = self.settings.get("suggestion_threshold", 0.85)
        try:
            return float(value)
        except (ValueError, TypeError):
            logger.warning("config_invalid_suggestion_threshold", value=value)
            return 0.85

    @property
    def console_user_id(self) -> str:
        """User id the console transport sends messages as."""
        return str(self.settings.get("console_user_id", "console"))

    @property
    def api_base_url(self) -> str:
        """Base URL of the slash-command registration API."""
        return os.environ.get("API_BASE_URL") or self.settings.get(
            "api_base_url", "https://discord.com/api/v10"
        )

    @property
    def bot_token(self) -> str:
        """Bot token for the registration call. Raises if unset."""
        token = os.environ.get("BOT_TOKEN", "")
        if not token:
            raise ConfigurationError(
                "BOT_TOKEN is missing in environment variables",
                setting_name="BOT_TOKEN",
            )
        return token

    @property
    def application_id(self) -> str:
        """Application id for the registration call. Raises if unset."""
        app_id = os.environ.get("BOT_ID", "")
        if not app_id:
            raise ConfigurationError(
                "BOT_ID is missing in environment variables",
                setting_name="BOT_ID",
            )
        return app_id

    @property
    def log_dir(self) -> Path:
        """Get log directory path."""
        configured = self.settings.get("log_dir")
        if configured:
            return Path(configured).expanduser()
        return Path(__file__).parent.parent / "logs"

    @property
    def logging_level(self) -> str:
        """Global log level (default INFO). Controls console and combined file."""
        log_config = self.settings.get("logging") or {}
        return log_config.get("level", "INFO")

    @property
    def logging_subsystem_levels(self) -> dict:
        """Per-subsystem log level overrides. E.g. {"gate": "DEBUG"}."""
        log_config = self.settings.get("logging") or {}
        return log_config.get("subsystem_levels", {})

    @property
    def logging_max_file_size_mb(self) -> int:
        """Max size per log file in MB before rotation (default 10)."""
        log_config = self.settings.get("logging") or {}
        return log_config.get("max_file_size_mb", 10)

    @property
    def logging_backup_count(self) -> int:
        """Number of rotated log files to keep (default 5)."""
        log_config = self.settings.get("logging") or {}
        return log_config.get("backup_count", 5)

    def is_owner(self, user_id: str) -> bool:
        return str(user_id) in self.owners

    def is_beta_user(self, user_id: str) -> bool:
        return str(user_id) in self.beta_users


# Global config instance
_config: Optional[Config] = None


def get_config() -> Config:
    """Get or create the global config instance."""
    global _config
    if _config is None:
        _config = Config()
    return _config
