"""Error taxonomy shared by the ingestion pipeline and the HTTP layer.

Client errors carry the status code they surface as. Ingestion errors are
server-side failures; the API hides their detail behind a generic 500.
"""

from __future__ import annotations


class MirrorError(Exception):
    pass


class ClientError(MirrorError):
    status_code = 400


class ValidationError(ClientError):
    """Missing or malformed request field."""

    status_code = 422


class AuthError(ClientError):
    """Webhook token mismatch."""

    status_code = 403


class IngestionError(MirrorError):
    pass


class FetchError(IngestionError):
    """Archive download or extraction failed. Transient, retryable."""


class ParseError(IngestionError):
    """Descriptor is malformed. Never retried."""


class PersistError(IngestionError):
    """Store transaction failed and was rolled back. Retryable."""
