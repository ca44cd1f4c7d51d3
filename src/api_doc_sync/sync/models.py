"""Output records produced by a synchronization run.

Targets come from the caller; every other record is built fresh per run
and handed back inside a SyncResult.
"""

from enum import Enum

from pydantic import BaseModel, Field


class Visibility(str, Enum):
    PUBLIC = "public"
    PRIVATE = "private"
    AUTH = "auth"


class SegmentType(str, Enum):
    LITERAL = "literal"
    PARAM = "param"
    WILDCARD = "wildcard"
    FALLBACK = "fallback"


class PathSegment(BaseModel):
    """One segment of an endpoint path, e.g. ``users`` or ``:id``."""

    type: SegmentType
    value: str
    value_type: str | None = None  # rendered type, params only
    doc: str = ""


class ErrorEntry(BaseModel):
    """A documented error code an endpoint may return."""

    code: str  # NotFound / Internal / ...
    doc: str = ""


class FieldRecord(BaseModel):
    name: str
    wire_name: str | None = None
    location: str | None = None  # header / query / cookie / body
    type: str
    doc: str = ""


class TypeRecord(BaseModel):
    """A named struct type referenced by an endpoint."""

    name: str
    doc: str = ""
    fields: list[FieldRecord] = []


class EndpointRecord(BaseModel):
    """Everything known about the endpoint declared in one target file."""

    name: str = ""
    method: str = ""
    visibility: Visibility = Visibility.PRIVATE
    language: str = "PYTHON"
    path: list[PathSegment] = []
    doc: str = ""
    errors: list[ErrorEntry] = []
    request_type: str | None = None
    response_type: str | None = None
    types: list[TypeRecord] = []

    def has_type(self, name: str) -> bool:
        return any(t.name == name for t in self.types)


class Target(BaseModel):
    """A source file we want endpoint metadata for."""

    file: str
    service: str = ""
    source: str | None = None  # replaces the on-disk contents when set
    endpoint: EndpointRecord = Field(default_factory=EndpointRecord)


class SyncResult(BaseModel):
    targets: list[Target]
    validation_errors: list[str] = []
    complete: bool = True
