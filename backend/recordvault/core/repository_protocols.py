"""Boundary Protocols — contracts between core and the infrastructure shell.

Invariants:
    - Core NEVER imports from shell — dependency arrows point inward only
    - All IO operations accessed through Protocol types
    - Implementations provided by the shell via dependency injection

Design Decisions:
    - Protocol over ABC: structural subtyping, tests pass fakes without inheritance
    - SymmetricCipher is sync: it is CPU-bound and stateless after construction
    - StoreCatalog is async and receives the live connection: dialect adapters
      hold no connection state of their own
    - Connection typed as Any: core does not know what SQLAlchemy is
"""

from typing import Any, Protocol


class SymmetricCipher(Protocol):
    """Contract for field-level encryption keyed by a process-wide secret.

    decrypt() raises EncryptionError for tampered, corrupt or foreign-key
    ciphertexts.
    """
    def encrypt(self, plaintext: str) -> str: ...
    def decrypt(self, ciphertext: str) -> str: ...


class StoreCatalog(Protocol):
    """Contract for dialect-specific catalog and statistics questions."""
    dialect: str

    async def server_identity(self, conn: Any) -> dict[str, str | None]: ...

    async def capabilities(
        self, conn: Any, principal_table: str,
    ) -> dict[str, bool]: ...

    async def active_connections(self, conn: Any) -> int: ...

    async def storage_size(self, conn: Any, table: str | None = None) -> int: ...

    async def slow_operations(
        self, conn: Any, threshold_ms: float, limit: int,
    ) -> list[dict[str, Any]]: ...

    def reindex_statement(self, table: str) -> str: ...

    def analyze_statement(self) -> str: ...

    def seconds_between(self, later: Any, earlier: Any) -> Any: ...
