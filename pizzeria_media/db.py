from supabase import Client, create_client

from pizzeria_media.config import Settings, logger


def supabase_create_client(settings: Settings) -> Client:
    """
    Creates and returns a Supabase client using the configured URL and key.

    Raises:
        ValueError: If the Supabase URL or key is not configured
    """
    if not settings.supabase_url or not settings.supabase_key:
        error_msg = "SUPABASE_URL or SUPABASE_SERVICE_KEY is not configured"
        logger.error(error_msg)
        raise ValueError(error_msg)
    try:
        client: Client = create_client(settings.supabase_url, settings.supabase_key)
        logger.info("Supabase client connected successfully!")
        return client
    except Exception as e:
        logger.error(f"Failed to create Supabase client: {e}")
        raise
