"""Approval lifecycle: records, registry, formatting, orchestration and decision intake."""
