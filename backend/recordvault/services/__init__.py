"""Services Layer — record store, audit trail and schema diagnostics.

Invariants:
    - Every service receives the DatabaseSessionManager through its constructor
    - Services return schema models or diagnostic results, never ORM rows

Design Decisions:
    - One service per concern for locality (no god objects)
"""
