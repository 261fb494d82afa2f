"""Settings — verifies URL normalization and sensitive-field normalization."""

from recordvault.config import Settings, normalize_database_url


def test_postgres_urls_use_asyncpg():
    assert normalize_database_url("postgresql://u:p@h/db") == "postgresql+asyncpg://u:p@h/db"
    assert normalize_database_url("postgres://u:p@h/db") == "postgresql+asyncpg://u:p@h/db"
    assert normalize_database_url("sqlite+aiosqlite:///x.db") == "sqlite+aiosqlite:///x.db"


def test_settings_normalize_sensitive_fields():
    settings = Settings(sensitive_fields=["Password", " TOKEN ", "password", ""])
    assert settings.sensitive_fields == ["password", "token"]


def test_settings_from_environment(monkeypatch):
    monkeypatch.setenv("DATABASE_URL", "postgresql://u:p@h/db")
    monkeypatch.setenv("AUTO_FIX_ON_STARTUP", "true")
    settings = Settings()
    assert settings.database_url == "postgresql+asyncpg://u:p@h/db"
    assert settings.auto_fix_on_startup is True
    assert settings.encryption_key.get_secret_value() == "recordvault-test-key"
