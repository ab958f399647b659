"""
Reporting Portal API Models

Pydantic models for request validation and response serialization.
ORM tables live in :mod:`portal.models.db`.
"""
