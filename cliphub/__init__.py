"""
ClipHub - metadata and upload coordination for short video clips.

This package contains the complete application:
- core: Framework-agnostic clip lifecycle logic
- infrastructure: Snowflake and R2/S3 integrations
- api: FastAPI routes and dependencies
- config: Application configuration
"""

__version__ = "0.1.0"
