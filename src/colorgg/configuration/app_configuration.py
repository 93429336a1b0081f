from __future__ import annotations
from pathlib import Path
import fcntl
from typing import Any, Dict
import yaml

from colorgg.configuration.ai_settings import AISettings
from colorgg.util.logger import get_logger

logger = get_logger("app_configuration")


CONFIG_PATH = Path("./config/app_config.yml").resolve()


class AppConfig:
    """File-lock based accessor around the YAML-based application configuration.

    The class caches contents of ``./config/app_config.yml``, exposes dictionary-like
    access helpers, and resolves classifier settings through :class:`AISettings`.
    Uses fcntl file locks for safe concurrent access across processes.
    """

    def __init__(self, config_path: Path) -> None:
        self.config_path = config_path
        self._data: Dict[str, Any] = {}
        self.reload()

    # --------------------------
    # Private helpers
    # --------------------------
    def load_from_disk(self) -> Dict[str, Any]:
        try:
            with self.config_path.open("r", encoding="utf-8") as f:
                fcntl.flock(f.fileno(), fcntl.LOCK_SH)
                try:
                    data = yaml.safe_load(f)
                finally:
                    fcntl.flock(f.fileno(), fcntl.LOCK_UN)
                return data if isinstance(data, dict) else {}
        except FileNotFoundError:
            logger.error("[APP CONFIGURATION] Config file %s not found.", self.config_path)
        except Exception as exc:
            logger.error("[APP CONFIGURATION] Failed to load config %s: %s", self.config_path, exc)
        return {}

    def _section(self, name: str) -> Dict[str, Any]:
        section = self._data.get(name, {})
        return section if isinstance(section, dict) else {}

    # --------------------------
    # Public API
    # --------------------------
    def reload(self) -> Dict[str, Any]:
        """Reload configuration from disk and return the loaded mapping.

        Returns the raw mapping that was loaded (an empty dict on error).
        """
        self._data = self.load_from_disk()
        return self._data

    @property
    def data(self) -> Dict[str, Any]:
        """Return the current cached configuration mapping.

        The returned dict is the internal cache (shallow reference). Callers
        should not mutate it.
        """
        return self._data

    def get(self, key: str, default: Any = None) -> Any:
        """Safe lookup for top-level configuration keys."""
        return self._data.get(key, default)

    # --------------------------
    # High-level shortcuts
    # --------------------------
    @property
    def ai_settings(self) -> AISettings:
        """Return the classifier settings wrapped in an AISettings helper."""
        return AISettings(self._section("ai_settings"))

    @property
    def store_path(self) -> Path:
        """Location of the live rule/settings store."""
        return Path(self._section("moderation").get("store_path", "./data/moderation.yml")).resolve()

    @property
    def defaults_path(self) -> Path:
        """Location of the shipped default rules and settings."""
        return Path(self._section("moderation").get("defaults_path", "./config/default_rules.yml")).resolve()

    @property
    def context_size(self) -> int:
        """Number of prior channel messages sent along with each classification."""
        return int(self._section("moderation").get("context_size", 10))

    @property
    def restraint_timeout_days(self) -> int:
        """Length of the mute applied when a ban-request offender cannot be kicked."""
        return int(self._section("moderation").get("restraint_timeout_days", 7))

    @property
    def reviewer_search_timeout(self) -> float:
        """Per-guild bound on the member fetch used to locate the ban reviewer."""
        return float(self._section("moderation").get("reviewer_search_timeout_seconds", 10.0))

    @property
    def summary_history(self) -> int:
        return int(self._section("moderation").get("summary_history", 50))

    @property
    def audit_db_path(self) -> Path:
        return Path(self._section("audit").get("db_path", "./data/audit.db")).resolve()

    @property
    def audit_memory_limit(self) -> int:
        return int(self._section("audit").get("memory_limit", 5000))


# Shared application-wide configuration instance
app_config = AppConfig(CONFIG_PATH)
