"""ORM Models — SQLAlchemy declarative models for every required physical relation.

Invariants:
    - All models inherit from Base (db/base.py)
    - Importing this package populates Base.metadata completely

Design Decisions:
    - One file per entity for locality
    - All models imported here so the schema descriptor sees every table
      before it is built
"""

from recordvault.models.principal import Principal  # noqa: F401
from recordvault.models.connection_string import ConnectionString  # noqa: F401
from recordvault.models.stored_record import StoredRecord  # noqa: F401
from recordvault.models.audit_entry import AuditEntry  # noqa: F401
