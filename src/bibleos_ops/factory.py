"""Build adapters, storage and mailer from configuration.

Database selection, first match wins:

1. Profile mode: ``BIBLEOS_PROFILE`` (or an explicit ``profile_name``)
   names a ``[profiles.<name>]`` table in ops.toml.
2. ``DATABASE_URL``: direct PostgreSQL.
3. ``SUPABASE_URL`` + ``SUPABASE_SERVICE_ROLE_KEY``: Supabase.

Usage:
    from bibleos_ops.factory import get_adapter, get_storage

    adapter = get_adapter()
    storage = get_storage()
"""

import logging
from urllib.parse import quote

from bibleos_ops.adapters import AsyncPostgresAdapter, AsyncSupabaseAdapter, DatabaseClient
from bibleos_ops.config import DatabaseProfile, Settings, get_settings, load_ops_config
from bibleos_ops.errors import ConfigurationError, ProfileNotFoundError
from bibleos_ops.notifications import Mailer, ResendMailer
from bibleos_ops.storage import LocalObjectStorage, ObjectStorage, SupabaseObjectStorage

logger = logging.getLogger(__name__)

# Columns bound as jsonb by the Postgres adapter
JSONB_COLUMNS = ["metadata_json", "metadata"]


def resolve_url(profile: DatabaseProfile) -> str:
    """Resolve profile URL with password substitution.

    Args:
        profile: Database profile from config

    Returns:
        Connection URL with password substituted
    """
    url = profile.url
    if profile.db_password and "[YOUR-PASSWORD]" in url:
        url = url.replace("[YOUR-PASSWORD]", quote(profile.db_password, safe=""))
    return url


def adapter_for_profile(profile: DatabaseProfile) -> DatabaseClient:
    """Create the adapter a profile describes."""
    if profile.provider == "supabase":
        if not profile.key:
            raise ProfileNotFoundError("Supabase profile needs a 'key'")
        return AsyncSupabaseAdapter(url=profile.url, key=profile.key)
    return AsyncPostgresAdapter(resolve_url(profile), jsonb_columns=JSONB_COLUMNS)


def get_adapter(
    settings: Settings | None = None,
    profile_name: str | None = None,
) -> DatabaseClient:
    """Get a database adapter based on configuration.

    Raises:
        ProfileNotFoundError: If the named profile is missing or nothing
            is configured.
    """
    settings = settings or get_settings()
    profile_name = profile_name or settings.bibleos_profile

    if profile_name:
        config = load_ops_config(settings.ops_config_path)
        if profile_name not in config.profiles:
            raise ProfileNotFoundError(
                f"Profile '{profile_name}' not found in {settings.ops_config_path}. "
                f"Available profiles: {', '.join(config.profiles) or 'none'}"
            )
        logger.info("Using database profile %s", profile_name)
        return adapter_for_profile(config.profiles[profile_name])

    if settings.database_url:
        return AsyncPostgresAdapter(settings.database_url, jsonb_columns=JSONB_COLUMNS)

    if settings.supabase_url and settings.supabase_key:
        return AsyncSupabaseAdapter(url=settings.supabase_url, key=settings.supabase_key)

    raise ProfileNotFoundError(
        "No database configuration found.\n"
        "Either:\n"
        "  1. Set BIBLEOS_PROFILE to a profile in ops.toml\n"
        "  2. Set DATABASE_URL\n"
        "  3. Set SUPABASE_URL and SUPABASE_SERVICE_ROLE_KEY"
    )


def get_storage(settings: Settings | None = None) -> ObjectStorage:
    """Backup artifact storage: a local directory if configured, else Supabase."""
    settings = settings or get_settings()
    if settings.backup_local_dir:
        return LocalObjectStorage(settings.backup_local_dir)
    if settings.supabase_url and settings.supabase_key:
        return SupabaseObjectStorage(
            settings.supabase_url, settings.supabase_key, bucket=settings.backup_bucket
        )
    raise ConfigurationError(
        "No backup storage configured. Set BACKUP_LOCAL_DIR or SUPABASE_URL and "
        "SUPABASE_SERVICE_ROLE_KEY."
    )


def get_mailer(settings: Settings | None = None) -> Mailer:
    settings = settings or get_settings()
    if not settings.resend_api_key:
        raise ConfigurationError("Server configuration incomplete.")
    return ResendMailer(settings.resend_api_key)
