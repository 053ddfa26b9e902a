"""
Core logic for linked S3 content.

This module is framework-agnostic - it doesn't import FastAPI, boto3,
Snowflake, or any infrastructure concerns. Storage and field persistence
are reached through protocols.
"""
