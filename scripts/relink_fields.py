#!/usr/bin/env python3
"""
Relink a field on one or more posts from the command line.

Useful after bulk copies into the bucket (aws s3 sync, console uploads):
each post's field is overwritten with the keys found under its folder.

Usage:
    python scripts/relink_fields.py FIELD_KEY BASE_KEY POST_ID [POST_ID ...]
    python scripts/relink_fields.py gallery "posts/{post_id}" 12 13 14
    python scripts/relink_fields.py gallery photos 12 --mock

BASE_KEY may contain {post_id}, which is filled in per post.

Requires:
    - .env file with S3 and Snowflake credentials (unless --mock)
"""

import asyncio
import sys
from pathlib import Path

# Make the package importable when run from a checkout
sys.path.insert(0, str(Path(__file__).parent.parent))

from dotenv import load_dotenv

# Load environment variables
load_dotenv()


async def relink_posts(field_key: str, base_key: str, post_ids: list[int], mock: bool) -> bool:
    """Relink every post; returns False if any post failed."""
    from s3content.config.settings import ConfigError, get_settings, load_storage_config
    from s3content.core.content.relink import Relinker
    from s3content.infrastructure.snowflake.client import create_snowflake_connection
    from s3content.infrastructure.snowflake.repositories.fields import (
        SnowflakeConfig,
        SnowflakeFieldRepository,
    )
    from s3content.infrastructure.storage.client import StorageError, create_storage_client

    settings = get_settings()
    if mock:
        settings = settings.model_copy(update={"s3_mock_mode": True, "snowflake_mock_mode": True})

    try:
        storage_config = load_storage_config(settings)
    except ConfigError as e:
        print(f"ERROR: {e}")
        return False

    storage = create_storage_client(config=storage_config, mock_mode=settings.s3_mock_mode)

    snowflake_config = None
    if not settings.snowflake_mock_mode:
        snowflake_config = SnowflakeConfig(
            account=settings.snowflake_account,
            user=settings.snowflake_user,
            password=settings.snowflake_password or None,
            private_key_path=settings.snowflake_private_key_path,
            database=settings.snowflake_database,
            schema=settings.snowflake_schema,
            warehouse=settings.snowflake_warehouse,
            role=settings.snowflake_role,
        )

    failed = 0

    with create_snowflake_connection(
        config=snowflake_config,
        mock_mode=settings.snowflake_mock_mode,
    ) as conn:
        repository = SnowflakeFieldRepository(conn)
        relinker = Relinker(storage, repository)

        for post_id in post_ids:
            post_base_key = base_key.replace("{post_id}", str(post_id))
            try:
                items = await relinker.relink(field_key, post_id, post_base_key)
            except StorageError as e:
                failed += 1
                print(f"[ERR] post {post_id}: {e}")
                continue

            print(f"[OK] post {post_id}: {len(items)} item(s) under '{post_base_key}'")
            for key in items:
                print(f"    {key}")

    print(f"\n=== Relink Complete ===")
    print(f"Posts: {len(post_ids)}")
    print(f"Errors: {failed}")

    return failed == 0


def main():
    import argparse

    parser = argparse.ArgumentParser(description='Relink S3 content fields')
    parser.add_argument('field_key', help='Field key to overwrite')
    parser.add_argument('base_key', help='Folder to scan; may contain {post_id}')
    parser.add_argument('post_ids', nargs='+', type=int, help='Posts to relink')
    parser.add_argument('--mock', action='store_true', help='Use in-memory S3 and Snowflake')
    args = parser.parse_args()

    success = asyncio.run(
        relink_posts(args.field_key, args.base_key, args.post_ids, mock=args.mock)
    )

    sys.exit(0 if success else 1)


if __name__ == '__main__':
    main()
