"""
Audit trail for ColorGG.

- **audit_log.py**: ``AuditLog`` stamps and buffers ``mod_action``,
  ``ai_analysis``, ``bot_event`` and ``error`` records, publishes them on a
  live feed and persists them through the audit repository.
"""
