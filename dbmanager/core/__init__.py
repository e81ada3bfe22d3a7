"""Core Layer — pure SQL composition and domain types, no IO, no async.

Invariants:
    - No module in core/ imports from services/ or infrastructure/
    - All functions are pure and deterministic
"""
