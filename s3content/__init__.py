"""
S3 Content - backend for a CMS field type that links media stored in S3.

This package contains the complete application:
- core: Framework-agnostic upload proxy, field access and relinking
- infrastructure: S3 and Snowflake integrations
- api: FastAPI routes and dependencies
- config: Application configuration
"""

__version__ = "2.0.0"
