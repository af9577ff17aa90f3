"""
SQL schema for the media catalog table and storage buckets.
Run these queries in your Supabase SQL editor.
"""

from pizzeria_media.core.storage_policy import all_bucket_names

CREATE_GALLERY_IMAGES_TABLE = """
-- Catalog of uploaded images
CREATE TABLE IF NOT EXISTS gallery_images (
    id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
    title VARCHAR(255) NOT NULL,
    description TEXT DEFAULT '',
    image_url TEXT NOT NULL,
    storage_path TEXT NOT NULL,
    bucket VARCHAR(100) NOT NULL,
    category VARCHAR(100) DEFAULT 'main',
    sort_order INTEGER DEFAULT 999,
    is_active BOOLEAN DEFAULT TRUE,
    is_featured BOOLEAN DEFAULT FALSE,
    file_size BIGINT,
    mime_type VARCHAR(100),
    created_at TIMESTAMPTZ DEFAULT NOW(),
    updated_at TIMESTAMPTZ DEFAULT NOW()
);

-- Create indexes for faster lookups
CREATE INDEX IF NOT EXISTS idx_gallery_images_category ON gallery_images(category);
CREATE INDEX IF NOT EXISTS idx_gallery_images_is_active ON gallery_images(is_active);
CREATE UNIQUE INDEX IF NOT EXISTS idx_gallery_images_object
    ON gallery_images(bucket, storage_path);

-- Enable Row Level Security
ALTER TABLE gallery_images ENABLE ROW LEVEL SECURITY;

-- Policy: Anyone can read active images
CREATE POLICY gallery_images_select_active ON gallery_images
    FOR SELECT
    USING (is_active);

-- Policy: Service role can do everything (for API)
CREATE POLICY gallery_images_service_role_all ON gallery_images
    FOR ALL
    USING (auth.role() = 'service_role');
"""

CREATE_UPDATED_AT_TRIGGER = """
-- Function to update updated_at timestamp
CREATE OR REPLACE FUNCTION update_updated_at_column()
RETURNS TRIGGER AS $$
BEGIN
    NEW.updated_at = NOW();
    RETURN NEW;
END;
$$ language 'plpgsql';

-- Trigger for gallery_images table
DROP TRIGGER IF EXISTS update_gallery_images_updated_at ON gallery_images;
CREATE TRIGGER update_gallery_images_updated_at
    BEFORE UPDATE ON gallery_images
    FOR EACH ROW
    EXECUTE FUNCTION update_updated_at_column();
"""


def create_buckets_sql() -> str:
    """Public buckets for every storage target in the upload policy."""
    statements = [
        "-- Public storage buckets",
    ]
    for bucket in all_bucket_names():
        statements.append(
            "INSERT INTO storage.buckets (id, name, public) "
            f"VALUES ('{bucket}', '{bucket}', true) ON CONFLICT (id) DO NOTHING;"
        )
    return "\n".join(statements)


# Combined setup script
FULL_SCHEMA_SETUP = f"""
-- =====================================================
-- Pizzeria Media Schema Setup
-- =====================================================
-- Run this in your Supabase SQL Editor
-- =====================================================

{CREATE_GALLERY_IMAGES_TABLE}

{CREATE_UPDATED_AT_TRIGGER}

{create_buckets_sql()}

-- =====================================================
-- Setup Complete!
-- =====================================================
"""

if __name__ == "__main__":
    print(FULL_SCHEMA_SETUP)
