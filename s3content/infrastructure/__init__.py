"""
Infrastructure layer - external service integrations.

Each subdirectory wraps an external dependency:
- snowflake: Field value persistence
- storage: Object storage (S3)

These wrappers translate between external formats and our domain models.
"""
