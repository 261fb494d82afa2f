"""Infrastructure Layer — store handle, dialect catalogs, cipher and logging.

Invariants:
    - Infrastructure implements core/ protocols; core never imports from here
    - All store calls wrapped with timeout and error mapping

Design Decisions:
    - Concrete adapters (Fernet, PostgreSQL/SQLite catalogs) injected into services
"""
