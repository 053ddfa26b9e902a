"""
Object storage integration for linked content.

Talks to AWS S3 (or any S3-compatible store) via boto3.
Includes mock mode for local development without credentials.
"""
