"""
Task subsystem.

Components:
- task_models.py: data structures (Task, TaskStatus, Priority)
- task_store.py: SQLite-backed storage + the reminder read queries
- task_api.py: small high-level helpers used by commands
"""
