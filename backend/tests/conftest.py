"""Root conftest — shared test configuration."""

import os

# Ensure tests never reach a real store or use a real key
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("ENCRYPTION_KEY", "recordvault-test-key")
os.environ.setdefault("LOG_FORMAT", "text")
