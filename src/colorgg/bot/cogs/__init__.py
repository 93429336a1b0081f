"""
Discord cogs for ColorGG.

- **message_listener.py**: hands every guild message to the moderation pipeline
- **events_listener.py**: lifecycle events, member joins and command errors
- **ban_review_listener.py**: resolves ban requests from approve/deny clicks
- **moderation_cmds.py**: ``/summary`` and ``/aipurge`` slash commands
"""
