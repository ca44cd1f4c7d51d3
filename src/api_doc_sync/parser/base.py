"""Declarations discovered in application source.

Parsers turn a package of source files into endpoint and type
declarations; the sync pipeline only ever sees these models.
"""

import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Protocol

from api_doc_sync.parser.errors import ErrorList


# Type references


@dataclass(frozen=True)
class BuiltinType:
    name: str  # str / int / Any / ...

    def __str__(self) -> str:
        return self.name


@dataclass(frozen=True)
class NamedType:
    """A reference to a declared type, e.g. a dataclass in the package."""

    name: str
    doc: str = ""

    def __str__(self) -> str:
        return self.name


@dataclass(frozen=True)
class PointerType:
    """An optional wrapper around another type (``X | None``)."""

    elem: "TypeRef"

    def __str__(self) -> str:
        return f"{self.elem} | None"


@dataclass(frozen=True)
class ListType:
    elem: "TypeRef"

    def __str__(self) -> str:
        return f"list[{self.elem}]"


@dataclass(frozen=True)
class MapType:
    key: "TypeRef"
    value: "TypeRef"

    def __str__(self) -> str:
        return f"dict[{self.key}, {self.value}]"


@dataclass(frozen=True)
class StructField:
    name: str
    type: "TypeRef"
    doc: str = ""


@dataclass(frozen=True)
class StructType:
    fields: tuple[StructField, ...] = ()

    def __str__(self) -> str:
        return "struct"


TypeRef = BuiltinType | NamedType | PointerType | ListType | MapType | StructType


def deref(t: TypeRef | None) -> TypeRef | None:
    """Strip optional wrappers until the underlying type is reached."""
    while isinstance(t, PointerType):
        t = t.elem
    return t


# Declarations


@dataclass(frozen=True)
class ParameterEncoding:
    """How one field of a request or response travels over the wire."""

    src_name: str
    wire_name: str
    location: str  # header / query / cookie / body
    type: TypeRef
    doc: str = ""


@dataclass(frozen=True)
class PathSegmentDecl:
    type: str  # literal / param / wildcard / fallback
    value: str
    value_type: TypeRef | None = None


@dataclass
class EndpointDecl:
    name: str
    file: Path
    line: int
    doc: str = ""
    http_methods: list[str] = field(default_factory=list)
    access: str = "private"  # public / private / auth
    path: list[PathSegmentDecl] = field(default_factory=list)
    request: TypeRef | None = None
    response: TypeRef | None = None
    request_encoding: list[ParameterEncoding] | None = None
    response_encoding: list[ParameterEncoding] | None = None


@dataclass
class TypeDecl:
    name: str
    file: Path
    line: int
    type: TypeRef
    doc: str = ""


Declaration = EndpointDecl | TypeDecl


# Parsing session


@dataclass
class SourceFile:
    path: Path
    source: str


@dataclass
class PackageInfo:
    """A directory of source files, loaded as one unit."""

    path: str  # relative to the app root, "." for the root itself
    dir: Path
    files: list[SourceFile] = field(default_factory=list)

    @property
    def name(self) -> str:
        return self.dir.name


class OverlayReader(Protocol):
    def read_file(self, path: Path) -> str: ...

    def overlay_files(self, directory: Path) -> list[Path]: ...


@dataclass
class ParseContext:
    app_root: Path
    errors: ErrorList
    overlay: OverlayReader
    parse_tests: bool = False
    cancel: threading.Event | None = None

    @property
    def cancelled(self) -> bool:
        return self.cancel is not None and self.cancel.is_set()


class SourceParser(Protocol):
    """The interface every source parsing collaborator implements."""

    def load_package(self, pkg_path: str) -> PackageInfo | None: ...

    def parse_endpoints(self, pkg: PackageInfo) -> list[EndpointDecl]: ...

    def parse_types(self, pkg: PackageInfo) -> list[TypeDecl]: ...
