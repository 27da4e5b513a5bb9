"""
Shared pytest configuration.

Settings are read once at import time, so the test environment is pinned
here before any application module is imported.
"""

import os

os.environ.setdefault("APP_ENV", "test")
os.environ.setdefault("GROQ_API_KEY", "test-groq-key")
os.environ.setdefault("ENABLE_DEBUG_ENDPOINTS", "false")
