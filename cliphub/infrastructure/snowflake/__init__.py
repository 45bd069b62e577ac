"""
Snowflake persistence for clip and user records.

Includes in-memory repositories for local development without a database.
"""
