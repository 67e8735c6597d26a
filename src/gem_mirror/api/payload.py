"""Webhook payload parsing, shared-secret check and field validation."""

from __future__ import annotations

import hmac
import json
import logging

from fastapi import Request
from pydantic import BaseModel, TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from gem_mirror.errors import AuthError, ValidationError
from gem_mirror.specs import GemIdentifier

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = ("name", "version", "platform", "prerelease")
TOKEN_FIELD = "rubygems_token"

_bool_adapter = TypeAdapter(bool)


class SpecPayload(BaseModel):
    """Echo returned for add/remove webhooks."""

    name: str
    version: str
    platform: str
    prerelease: bool

    @classmethod
    def from_identifier(cls, identifier: GemIdentifier) -> SpecPayload:
        return cls(
            name=identifier.name,
            version=identifier.version,
            platform=identifier.platform,
            prerelease=identifier.prerelease,
        )


def token_matches(supplied: object, expected: str) -> bool:
    """Exact string comparison, no normalisation."""
    if not isinstance(supplied, str):
        return False
    return hmac.compare_digest(supplied.encode("utf-8"), expected.encode("utf-8"))


def _redacted(params: dict) -> dict:
    if TOKEN_FIELD not in params:
        return params
    return {**params, TOKEN_FIELD: "[FILTERED]"}


async def read_webhook(request: Request, token: str | None) -> GemIdentifier:
    """Parse and validate a webhook body into a GemIdentifier.

    Order matters: malformed JSON, then token, then each required field.
    """
    try:
        params = json.loads(await request.body())
    except (json.JSONDecodeError, UnicodeDecodeError):
        raise ValidationError("Invalid JSON") from None
    if not isinstance(params, dict):
        raise ValidationError("Invalid JSON")

    logger.info("webhook request: %r", _redacted(params))

    if token is not None and not token_matches(params.get(TOKEN_FIELD), token):
        raise AuthError("You're not Rubygems")

    for key in REQUIRED_FIELDS:
        if params.get(key) is None:
            raise ValidationError(f"No spec {key} given")

    try:
        prerelease = _bool_adapter.validate_python(params["prerelease"])
    except PydanticValidationError:
        raise ValidationError("Invalid spec prerelease given") from None

    version = params["version"]
    if isinstance(version, (int, float)) and not isinstance(version, bool):
        version = str(version)

    return GemIdentifier.build(
        name=params["name"],
        version=version,
        platform=params["platform"],
        prerelease=prerelease,
    )
