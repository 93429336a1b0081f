"""Publish/subscribe fan-out for status snapshots and audit records."""
