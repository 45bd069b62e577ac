"""
Infrastructure layer - external service integrations.

Each subdirectory wraps an external dependency:
- snowflake: Clip and user record persistence
- storage: Object storage (R2/S3) and access-grant signing

These wrappers translate between external formats and our domain models.
"""
