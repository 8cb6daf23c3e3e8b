# ABOUTME: Utilities package initialization for helmgen
# ABOUTME: Contains shared logging helpers

"""
helmgen Utilities Package

Shared utilities:
    - logging.py: Structured logging with run IDs and the generation audit trail
"""
