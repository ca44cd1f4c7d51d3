"""Annotation mappers built on the section extractor.

Endpoint doc comments may document their path parameters and error codes::

    Fetches a user.

    path params:
    - id: the user's numeric id

    errors:
    - NotFound: the user does not exist

Errors are extracted first. A line containing a colon always continues the
current section, so a section followed by another label needs two blank
lines between them unless it comes last.
"""

from types import MappingProxyType

from api_doc_sync.docs.section import extract_section
from api_doc_sync.sync.models import ErrorEntry

ERRORS_LABEL = "errors"
PATH_PARAMS_LABEL = "path params"

ERROR_STATUS_CODES = MappingProxyType({
    "OK": 200,
    "Canceled": 499,
    "Unknown": 500,
    "InvalidArgument": 400,
    "DeadlineExceeded": 504,
    "NotFound": 404,
    "AlreadyExists": 409,
    "PermissionDenied": 403,
    "ResourceExhausted": 429,
    "FailedPrecondition": 400,
    "Aborted": 409,
    "OutOfRange": 400,
    "Unimplemented": 501,
    "Internal": 500,
    "Unavailable": 503,
    "DataLoss": 500,
    "Unauthenticated": 401,
})


def http_status(code: str) -> int | None:
    """Return the conventional HTTP status for a symbolic error code."""
    return ERROR_STATUS_CODES.get(code)


def extract_error_annotations(doc: str) -> tuple[str, list[ErrorEntry]]:
    """Split the ``errors:`` section out of doc."""
    remainder, entries = extract_section(doc, ERRORS_LABEL)
    return remainder, [ErrorEntry(code=e.key, doc=e.doc) for e in entries]


def extract_path_annotations(doc: str) -> tuple[str, dict[str, str]]:
    """Split the ``path params:`` section out of doc, keyed by segment name.

    A name documented twice keeps its last description.
    """
    remainder, entries = extract_section(doc, PATH_PARAMS_LABEL)
    return remainder, {e.key: e.doc for e in entries}
