"""
Reminder subsystem.

Components:
- models.py: Reminder record and policy tags
- kv_store.py: key/value store adapters (Redis, in-memory)
- setting_store.py: global "reminders enabled" flag
- engine.py: three-policy scan with at-most-once dedup
- scheduler.py: timer/poll wrappers and the top-of-minute loop
- runner.py: background thread hosting the loop
"""
