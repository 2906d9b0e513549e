"""Error taxonomy shared by the services and the HTTP layer.

Services raise these; ``create_app`` registers a single handler that turns
any ``PortalError`` into a JSON response with the error's status code.
Batch operations never let them escape per item, they collect them as
values instead (see ``roster.ParseError`` and ``provisioning.PerRecordError``).
"""


class PortalError(Exception):
    status_code = 400

    def __init__(self, message, status_code=None, payload=None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        self.payload = payload or {}

    def to_dict(self):
        body = dict(self.payload)
        body["error"] = self.message
        return body


class ValidationError(PortalError):
    """Malformed input: bad email, bad department, missing fields."""


class MissingHeaders(ValidationError):
    def __init__(self, missing):
        self.missing = list(missing)
        super().__init__(
            f"Missing required headers: {', '.join(self.missing)}",
            payload={"missingHeaders": self.missing},
        )


class NoValidRecords(ValidationError):
    def __init__(self, message="No valid student data found in the file", payload=None):
        super().__init__(message, payload=payload)


class UnsupportedFormat(PortalError):
    pass


class ConflictError(PortalError):
    status_code = 409


class NotFoundOrForbidden(PortalError):
    """Missing, or owned by someone else. Callers cannot tell which."""

    status_code = 404


class NotFound(PortalError):
    status_code = 404


class PolicyError(PortalError):
    pass


class StorageIOError(PortalError):
    status_code = 500
