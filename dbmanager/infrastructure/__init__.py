"""Infrastructure Layer — database connections and cross-cutting concerns.

Invariants:
    - Infrastructure never imports from services/
    - Driver errors are propagated unchanged, never swallowed
"""
