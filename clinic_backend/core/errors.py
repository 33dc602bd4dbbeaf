"""Domain errors raised by the scheduling and specialty services."""

from collections.abc import Iterable

from fastapi import HTTPException, status


class ClinicError(Exception):
    """Base class for errors that are safe to show to the caller."""

    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str, **details):
        super().__init__(message)
        self.message = message
        self.details = details

    @property
    def detail(self) -> dict:
        return {'message': self.message, **self.details}


class NotFoundError(ClinicError):
    """Raised when a referenced doctor or link does not exist."""

    status_code = status.HTTP_404_NOT_FOUND

    def __init__(self, entity: str, entity_id):
        super().__init__(f'{entity} not found.', entity=entity, id=entity_id)
        self.entity = entity
        self.entity_id = entity_id


class InvalidReferenceError(ClinicError):
    """Raised when supplied ids do not resolve. Always carries every offending id."""

    def __init__(self, entity: str, ids: Iterable):
        missing = sorted(str(value) for value in ids)
        super().__init__(
            f'Unknown {entity} id(s): {", ".join(missing)}.',
            entity=entity,
            ids=missing,
        )
        self.entity = entity
        self.ids = missing


class ConflictError(ClinicError):
    status_code = status.HTTP_409_CONFLICT


class InvalidQueryError(ClinicError):
    """Raised for unknown filter or sort keys and malformed ranges."""


def to_http_exception(error: ClinicError) -> HTTPException:
    return HTTPException(status_code=error.status_code, detail=error.detail)


__all__ = [
    'ClinicError',
    'NotFoundError',
    'InvalidReferenceError',
    'ConflictError',
    'InvalidQueryError',
    'to_http_exception',
]
