"""
Utility functions and helpers for ColorGG.

- **logger.py**: Console and rotating-file logging setup.
- **discord_utils.py**: Stateless Discord helpers (privilege checks, member
  resolution, safe deletion, best-effort DMs).
"""
