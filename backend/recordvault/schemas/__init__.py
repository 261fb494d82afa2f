"""Pydantic Schemas — argument and result validation for the service boundary.

Invariants:
    - Schemas validate at system boundary (caller arguments, returned results)
    - Domain types from core/ used for enum fields

Design Decisions:
    - Separate from models: schemas are caller contracts, models are persistence
"""
