"""
Rule and settings store for the moderation pipeline.

Rules and global settings live in a single YAML document
(``./data/moderation.yml`` by default). The shipped defaults in
``./config/default_rules.yml`` seed the store on first run and are merged
under saved settings on every load so newly introduced settings fields are
always present.

Writes go through a temporary file that replaces the store atomically while
an exclusive ``fcntl`` lock is held.
"""

from __future__ import annotations

import copy
import fcntl
import os
import tempfile
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from colorgg.datatypes.moderation_datatypes import ModerationSettings, Rule
from colorgg.util.logger import get_logger

logger = get_logger("rule_store")


class RuleStore:
    """Owner of the ordered rule list and the global moderation settings."""

    def __init__(self, store_path: Path, defaults_path: Path) -> None:
        self.store_path = store_path
        self.defaults_path = defaults_path
        self._defaults = self._read_yaml(defaults_path)
        self._rules: List[Rule] = []
        self._settings = ModerationSettings()
        self.load()

    # --------------------------
    # Disk access
    # --------------------------
    @staticmethod
    def _read_yaml(path: Path) -> Dict[str, Any]:
        try:
            with path.open("r", encoding="utf-8") as f:
                fcntl.flock(f.fileno(), fcntl.LOCK_SH)
                try:
                    data = yaml.safe_load(f)
                finally:
                    fcntl.flock(f.fileno(), fcntl.LOCK_UN)
        except FileNotFoundError:
            return {}
        except Exception as exc:
            logger.error("[RULE STORE] Failed to read %s: %s", path, exc)
            return {}
        return data if isinstance(data, dict) else {}

    def _default_rules(self) -> List[Rule]:
        return _parse_rules(self._defaults.get("rules"))

    def _default_settings(self) -> Dict[str, Any]:
        settings = self._defaults.get("settings")
        return copy.deepcopy(settings) if isinstance(settings, dict) else {}

    def load(self) -> None:
        """(Re)load the store from disk, falling back to the shipped defaults."""
        saved = self._read_yaml(self.store_path)

        rules = _parse_rules(saved.get("rules")) if "rules" in saved else self._default_rules()
        merged_settings = self._default_settings()
        saved_settings = saved.get("settings")
        if isinstance(saved_settings, dict):
            merged_settings.update(saved_settings)

        self._rules = rules
        self._settings = ModerationSettings.from_dict(merged_settings)
        logger.info(
            "[RULE STORE] Loaded %d rules (%d enabled) from %s",
            len(self._rules),
            sum(1 for rule in self._rules if rule.enabled),
            self.store_path if saved else self.defaults_path,
        )

    def save(self) -> None:
        payload = self.export_config()
        self.store_path.parent.mkdir(parents=True, exist_ok=True)
        lock_path = self.store_path.with_suffix(self.store_path.suffix + ".lock")
        try:
            with lock_path.open("w") as lock_file:
                fcntl.flock(lock_file.fileno(), fcntl.LOCK_EX)
                try:
                    fd, tmp_name = tempfile.mkstemp(dir=self.store_path.parent, prefix=".moderation-")
                    with os.fdopen(fd, "w", encoding="utf-8") as tmp:
                        yaml.safe_dump(payload, tmp, sort_keys=False, allow_unicode=True)
                    os.replace(tmp_name, self.store_path)
                finally:
                    fcntl.flock(lock_file.fileno(), fcntl.LOCK_UN)
        except Exception as exc:
            logger.error("[RULE STORE] Failed to save %s: %s", self.store_path, exc)

    # --------------------------
    # Rules
    # --------------------------
    def get_rules(self) -> List[Rule]:
        """Return a snapshot of the rules; mutating it does not affect the store."""
        return [copy.copy(rule) for rule in self._rules]

    def get_enabled_rules(self) -> List[Rule]:
        return [rule for rule in self.get_rules() if rule.enabled]

    def get_rule(self, rule_id: str) -> Optional[Rule]:
        return next((copy.copy(rule) for rule in self._rules if rule.id == rule_id), None)

    def set_rules(self, rules: List[Rule]) -> None:
        self._rules = [copy.copy(rule) for rule in rules]
        self.save()

    def update_rule(self, rule_id: str, patch: Dict[str, Any]) -> Optional[Rule]:
        """Merge ``patch`` into the rule with ``rule_id``; returns None when no such rule exists."""
        for index, rule in enumerate(self._rules):
            if rule.id != rule_id:
                continue
            data = rule.to_dict()
            data.update({key: value for key, value in patch.items() if key != "id"})
            updated = Rule.from_dict(data)
            self._rules[index] = updated
            self.save()
            logger.info("[RULE STORE] Updated rule %s: %s", rule_id, ", ".join(sorted(patch)))
            return copy.copy(updated)
        logger.warning("[RULE STORE] Cannot update unknown rule %s", rule_id)
        return None

    # --------------------------
    # Settings
    # --------------------------
    def get_settings(self) -> ModerationSettings:
        return ModerationSettings.from_dict(self._settings.to_dict())

    def update_settings(self, patch: Dict[str, Any]) -> ModerationSettings:
        merged = self._settings.to_dict()
        merged.update(patch)
        self._settings = ModerationSettings.from_dict(merged)
        self.save()
        logger.info("[RULE STORE] Updated settings: %s", ", ".join(sorted(patch)))
        return self.get_settings()

    # --------------------------
    # Bulk operations
    # --------------------------
    def reset_to_defaults(self) -> None:
        self._rules = self._default_rules()
        self._settings = ModerationSettings.from_dict(self._default_settings())
        self.save()
        logger.info("[RULE STORE] Reset rules and settings to defaults")

    def export_config(self) -> Dict[str, Any]:
        return {
            "rules": [rule.to_dict() for rule in self._rules],
            "settings": self._settings.to_dict(),
        }

    def import_config(self, payload: Dict[str, Any]) -> None:
        if "rules" in payload:
            self._rules = _parse_rules(payload["rules"])
        if isinstance(payload.get("settings"), dict):
            merged = self._settings.to_dict()
            merged.update(payload["settings"])
            self._settings = ModerationSettings.from_dict(merged)
        self.save()


def _parse_rules(raw: Any) -> List[Rule]:
    if not isinstance(raw, list):
        return []
    rules: List[Rule] = []
    seen: set[str] = set()
    for item in raw:
        if not isinstance(item, dict) or "id" not in item:
            logger.warning("[RULE STORE] Skipping malformed rule entry: %r", item)
            continue
        rule = Rule.from_dict(item)
        if rule.id in seen:
            logger.warning("[RULE STORE] Skipping duplicate rule id %s", rule.id)
            continue
        seen.add(rule.id)
        rules.append(rule)
    return rules
