"""Correlates discovered declarations with the targets being synchronized."""

from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path

from api_doc_sync.docs.annotations import extract_error_annotations, extract_path_annotations
from api_doc_sync.parser.base import (
    Declaration,
    EndpointDecl,
    NamedType,
    ParameterEncoding,
    PathSegmentDecl,
    StructType,
    TypeDecl,
    TypeRef,
    deref,
)
from api_doc_sync.sync.models import (
    EndpointRecord,
    FieldRecord,
    PathSegment,
    SegmentType,
    TypeRecord,
    Visibility,
)


@dataclass
class Correlation:
    """The updated record for one target file, plus anything that went wrong."""

    file: Path
    record: EndpointRecord
    problems: list[str] = field(default_factory=list)


def correlate(decl: Declaration, records: Mapping[Path, EndpointRecord]) -> Correlation | None:
    """Apply a declaration to the record of the target owning its file.

    Returns None when no target claims the file, or when the declaration
    changes nothing.
    """
    file = decl.file.resolve()
    current = records.get(file)
    if current is None:
        return None

    match decl:
        case EndpointDecl():
            return correlate_endpoint(decl, file)
        case TypeDecl():
            return correlate_type(decl, file, current)


def correlate_endpoint(decl: EndpointDecl, file: Path) -> Correlation:
    """Build a fresh record for an endpoint declaration."""
    problems = []
    doc, errors = extract_error_annotations(decl.doc)
    doc, path_docs = extract_path_annotations(doc)

    method = ""
    if decl.http_methods:
        method = decl.http_methods[0]
    else:
        problems.append(f"endpoint {decl.name} declares no HTTP methods")

    try:
        visibility = Visibility(decl.access)
    except ValueError:
        problems.append(f"endpoint {decl.name} has unknown access level {decl.access!r}")
        visibility = Visibility.PRIVATE

    types: list[TypeRecord] = []
    request_type = _type_name(decl.request, decl.request_encoding, types)
    response_type = _type_name(decl.response, decl.response_encoding, types)

    record = EndpointRecord(
        name=decl.name,
        method=method,
        visibility=visibility,
        path=[_path_segment(s, path_docs) for s in decl.path],
        doc=doc.strip(),
        errors=errors,
        request_type=request_type,
        response_type=response_type,
        types=types,
    )
    return Correlation(file=file, record=record, problems=problems)


def correlate_type(decl: TypeDecl, file: Path, current: EndpointRecord) -> Correlation | None:
    """Add a struct declared next to the endpoint, unless already known."""
    if not isinstance(decl.type, StructType):
        return None
    # types found through the endpoint take precedence
    if current.has_type(decl.name):
        return None

    added = TypeRecord(
        name=decl.name,
        doc=decl.doc.strip(),
        fields=[
            FieldRecord(name=f.name, type=str(f.type), doc=f.doc.strip())
            for f in decl.type.fields
        ],
    )
    record = current.model_copy(update={"types": [*current.types, added]})
    return Correlation(file=file, record=record)


def _type_name(ref: TypeRef | None, encoding: list[ParameterEncoding] | None,
               types: list[TypeRecord]) -> str | None:
    named = deref(ref)
    if not isinstance(named, NamedType):
        return None
    if encoding and not any(t.name == named.name for t in types):
        types.append(TypeRecord(
            name=named.name,
            doc=named.doc.strip(),
            fields=[
                FieldRecord(
                    name=p.src_name,
                    wire_name=p.wire_name,
                    location=p.location,
                    type=str(p.type),
                    doc=p.doc.strip(),
                )
                for p in encoding
            ],
        ))
    return named.name


def _path_segment(segment: PathSegmentDecl, docs: dict[str, str]) -> PathSegment:
    return PathSegment(
        type=SegmentType(segment.type),
        value=segment.value,
        value_type=str(segment.value_type) if segment.value_type is not None else None,
        doc=docs.get(segment.value, "") if segment.type != "literal" else "",
    )
