"""
Discord integration for ColorGG.

- **runtime.py**: process counters, uptime, archived summaries and the status feed.

- **cogs/**: py-cord cogs wiring Discord events and slash commands to the
  moderation services.
"""
