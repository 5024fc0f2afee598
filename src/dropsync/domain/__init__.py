"""
Domain layer - pure business logic.

No I/O lives here: key normalization, classification rules,
cleanup state types and settings models.
"""
