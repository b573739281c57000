# config_local.example.py

"""
Example local overrides.

Usage:
  1) Copy this file to `config_local.py`
  2) Adjust values for your machine
  3) Never commit `config_local.py` (it is gitignored)

Prefer `.env` for secrets. This file should contain only safe overrides.
"""

# Example: run headless (scheduler + Matrix only)
# CONSOLE_ENABLED = False
# MATRIX_ENABLED = True

# Example: share reminder state with other instances
# REDIS_URL = "redis://localhost:6379/0"
