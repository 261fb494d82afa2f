"""RecordVault Package — database integrity checks and encrypted record management.

Invariants:
    - Package root contains no executable code (import side-effects prohibited)

Design Decisions:
    - Empty __init__.py: explicit imports only, no star exports
    - Wiring lives in bootstrap.py (create_services, lifespan)
"""
