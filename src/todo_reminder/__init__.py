"""Personal task tracker with a deduplicating reminder scanner."""
