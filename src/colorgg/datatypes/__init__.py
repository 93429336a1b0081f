"""
Plain data structures shared across ColorGG.

- **moderation_datatypes.py**: rules, settings, verdicts and actions
- **ban_request_datatypes.py**: pending ban requests, keys and resolutions
- **audit_datatypes.py**: audit entry shapes
"""
