from database_schema import FULL_SCHEMA_SETUP, create_buckets_sql

from pizzeria_media.core.storage_policy import all_bucket_names


def test_schema_creates_catalog_table():
    assert "CREATE TABLE IF NOT EXISTS gallery_images" in FULL_SCHEMA_SETUP
    assert "storage_path TEXT NOT NULL" in FULL_SCHEMA_SETUP


def test_every_policy_bucket_is_created():
    sql = create_buckets_sql()

    for bucket in all_bucket_names():
        assert f"VALUES ('{bucket}', '{bucket}', true)" in sql
