"""Database Lifecycle Manager — provision, reset and drop PostgreSQL test databases.

Invariants:
    - Package root contains no executable code (import side-effects prohibited)

Design Decisions:
    - Empty __init__.py: explicit imports only, no star exports
"""
