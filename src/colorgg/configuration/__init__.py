"""
Configuration management for ColorGG.

- **app_configuration.py**: YAML application configuration (classifier
  endpoint, store paths, context size, restraint and search timeouts, audit
  database) read under a shared file lock.

- **ai_settings.py**: Typed accessors for the ``ai_settings`` section.

- **rule_store.py**: The operator's moderation rules and global settings,
  seeded from shipped defaults and saved atomically.
"""
