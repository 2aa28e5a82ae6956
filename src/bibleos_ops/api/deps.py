"""Request dependencies: collaborators held on ``app.state``.

``create_app`` may be given ready-made collaborators (tests, embedding);
anything missing is built from settings on first use and cached on the
app.
"""

import hmac
from typing import Any

from fastapi import Request

from bibleos_ops import factory
from bibleos_ops.adapters.base import DatabaseClient
from bibleos_ops.config import OpsConfig, Settings
from bibleos_ops.errors import InvalidFieldError, UnauthorizedError
from bibleos_ops.notifications import Mailer
from bibleos_ops.storage import ObjectStorage


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_ops_config(request: Request) -> OpsConfig:
    return request.app.state.ops_config


def get_db(request: Request) -> DatabaseClient:
    state = request.app.state
    if state.adapter is None:
        state.adapter = factory.get_adapter(state.settings)
    return state.adapter


def get_object_storage(request: Request) -> ObjectStorage:
    state = request.app.state
    if state.storage is None:
        state.storage = factory.get_storage(state.settings)
    return state.storage


def get_mailer(request: Request) -> Mailer:
    state = request.app.state
    if state.mailer is None:
        state.mailer = factory.get_mailer(state.settings)
    return state.mailer


def verify_secret(expected: str, provided: str | None) -> None:
    """Check a scheduler secret; an empty ``expected`` disables the check.

    Raises:
        UnauthorizedError: If the provided secret does not match.
    """
    if not expected:
        return
    if not hmac.compare_digest(expected.encode(), (provided or "").encode()):
        raise UnauthorizedError()


async def read_body(request: Request) -> dict[str, Any]:
    """JSON object body; a missing or malformed body reads as empty."""
    try:
        body = await request.json()
    except ValueError:
        return {}
    return body if isinstance(body, dict) else {}


def flag(body: dict[str, Any], key: str, default: bool) -> bool:
    """Boolean field; missing or null reads as ``default``.

    Accepts JSON booleans and the strings ``"true"`` and ``"false"``.

    Raises:
        InvalidFieldError: For any other value.
    """
    value = body.get(key)
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().lower() in ("true", "false"):
        return value.strip().lower() == "true"
    raise InvalidFieldError(f"{key} must be true or false")
