"""
Repository layer for data access.

Provides the generic repository and its contract, isolating database
access from business logic.
"""
