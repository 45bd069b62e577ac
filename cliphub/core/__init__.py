"""
Core business logic for clip coordination.

This module is framework-agnostic - it doesn't import FastAPI, Snowflake,
boto3 or any infrastructure concerns. Stores come in through Protocols,
so the lifecycle logic can be tested against in-memory implementations.
"""
