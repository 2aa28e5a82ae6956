"""Exception taxonomy for backup, restore, retention and reminder operations.

Every error carries the HTTP status the API layer answers with, so the
endpoints only have to translate ``OpsError`` once.

Usage:
    from bibleos_ops.errors import BackupNotFoundError, OpsError

    try:
        await restore_backup(adapter, storage, backup_id, company_id)
    except OpsError as e:
        return e.status_code, e.to_dict()
"""

from typing import Any


class OpsError(Exception):
    """Base class for expected, caller-visible failures."""

    status_code: int = 500

    def __init__(self, message: str, **extra: Any) -> None:
        super().__init__(message)
        self.message = message
        self.extra = extra

    def to_dict(self) -> dict[str, Any]:
        """JSON body for this error."""
        return {"success": False, "error": self.message, **self.extra}


# ============================================================================
# Validation errors (no side effects)
# ============================================================================


class MissingFieldError(OpsError):
    """Required request fields are missing."""

    status_code = 400


class InvalidFieldError(OpsError):
    """A request field has the wrong type or value."""

    status_code = 400


class BackupNotFoundError(OpsError):
    """No backup record exists for the given id and company."""

    status_code = 404


class BackupNotCompletedError(OpsError):
    """The backup record exists but is not in ``completed`` status."""

    status_code = 400


class BackupVersionError(OpsError):
    """The artifact was written by a newer schema version."""

    status_code = 400

    def __init__(self, backup_version: int, current_version: int) -> None:
        super().__init__(
            "Backup version is newer than current schema. "
            "Please update the application first.",
            backup_version=backup_version,
            current_version=current_version,
        )
        self.backup_version = backup_version
        self.current_version = current_version


class InvalidArtifactError(OpsError):
    """The downloaded artifact is malformed or belongs to another tenant."""

    status_code = 400


# ============================================================================
# Authorization and concurrency
# ============================================================================


class UnauthorizedError(OpsError):
    """Scheduler secret missing or wrong."""

    status_code = 401

    def __init__(self, message: str = "Unauthorized") -> None:
        super().__init__(message)


class TenantBusyError(OpsError):
    """Another backup or restore holds the tenant."""

    status_code = 409

    def __init__(self, company_id: str, held_by: str) -> None:
        super().__init__(
            f"A {held_by} is already running for company {company_id}",
            company_id=company_id,
            running=held_by,
        )
        self.company_id = company_id
        self.held_by = held_by


# ============================================================================
# Infrastructure errors
# ============================================================================


class StorageError(OpsError):
    """Object storage upload or download failed."""

    status_code = 500


class MailerError(OpsError):
    """The email provider rejected or failed a send."""

    status_code = 502


class SchemaCycleError(OpsError):
    """The declared table graph contains a foreign-key cycle."""

    status_code = 500

    def __init__(self, tables: list[str]) -> None:
        super().__init__(
            f"Foreign-key cycle between tables: {', '.join(sorted(tables))}",
            tables=sorted(tables),
        )
        self.tables = sorted(tables)


class ConfigurationError(OpsError):
    """Required settings (credentials, endpoints) are missing."""

    status_code = 500


class ProfileNotFoundError(ConfigurationError):
    """No usable database profile or connection settings are configured."""
