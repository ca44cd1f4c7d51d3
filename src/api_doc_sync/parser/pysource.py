"""Python source parser.

Discovers endpoints declared with an ``@api(...)`` decorator, and the
classes they exchange, using the standard library ``ast`` module::

    @api(expose=True, method="GET", path="/users/:id")
    def get_user(id: int) -> User:
        ...

Request fields can choose their wire location with ``Annotated``::

    @dataclass
    class ListParams:
        trace: Annotated[str, Header("X-Trace-Id")]
        limit: int = 10  # page size
"""

import ast
import inspect
import logging
from pathlib import Path

from api_doc_sync.parser.base import (
    BuiltinType,
    EndpointDecl,
    ListType,
    MapType,
    NamedType,
    PackageInfo,
    ParameterEncoding,
    ParseContext,
    PathSegmentDecl,
    PointerType,
    SourceFile,
    StructField,
    StructType,
    TypeDecl,
    TypeRef,
    deref,
)
from api_doc_sync.parser.errors import ParseBailout

logger = logging.getLogger(__name__)

BUILTIN_TYPES = {
    "str", "int", "float", "bool", "bytes", "object", "Any", "None",
    "datetime", "date", "time", "timedelta", "Decimal", "UUID",
}
LIST_NAMES = {"list", "List", "Sequence", "Iterable", "set", "Set", "frozenset", "tuple", "Tuple"}
MAP_NAMES = {"dict", "Dict", "Mapping"}
STRUCT_BASES = {"BaseModel", "TypedDict", "NamedTuple"}
ENUM_BASES = {"Enum", "IntEnum", "StrEnum", "Flag", "IntFlag"}

HTTP_METHODS = {"GET", "POST", "PUT", "PATCH", "DELETE", "HEAD", "OPTIONS", "TRACE", "CONNECT", "*"}
QUERY_METHODS = {"GET", "HEAD", "DELETE"}

SEGMENT_PREFIXES = {":": "param", "*": "wildcard", "!": "fallback"}
WIRE_MARKERS = {"Header": "header", "Query": "query", "Cookie": "cookie", "Json": "body"}

# raised by annotations the type model does not understand
DECLARATION_ERRORS = (IndexError, KeyError, TypeError, ValueError, AttributeError)


class PySourceParser:
    """Parses the Python packages of an application."""

    def __init__(self, ctx: ParseContext):
        self.ctx = ctx
        self._trees: dict[Path, ast.Module] = {}
        self._classes: dict[str, dict[str, tuple[ast.ClassDef, SourceFile]]] = {}
        self._known: dict[str, dict[str, str]] = {}

    def load_package(self, pkg_path: str) -> PackageInfo | None:
        """Read and parse every source file of the package directory."""
        if self.ctx.cancelled:
            raise ParseBailout("synchronization cancelled")

        directory = (self.ctx.app_root / pkg_path).resolve()
        paths = set(directory.glob("*.py")) if directory.is_dir() else set()
        paths.update(self.ctx.overlay.overlay_files(directory))
        if not paths:
            self.ctx.errors.add(f"package {pkg_path!r} not found", directory)
            return None

        pkg = PackageInfo(path=pkg_path, dir=directory)
        for path in sorted(paths):
            if not self.ctx.parse_tests and _is_test_file(path):
                continue
            try:
                source = self.ctx.overlay.read_file(path)
            except OSError as e:
                self.ctx.errors.add(f"cannot read file: {e.strerror}", path)
                continue
            try:
                tree = ast.parse(source, filename=str(path))
            except SyntaxError as e:
                self.ctx.errors.add(f"syntax error: {e.msg}", path, e.lineno)
                continue
            self._trees[path] = tree
            pkg.files.append(SourceFile(path=path, source=source))

        self._index(pkg)
        logger.debug("Loaded package %s (%d files)", pkg_path, len(pkg.files))
        return pkg

    def parse_endpoints(self, pkg: PackageInfo) -> list[EndpointDecl]:
        """Find every ``@api`` decorated function in the package."""
        endpoints = []
        for f in pkg.files:
            for node in self._trees[f.path].body:
                if not isinstance(node, (ast.FunctionDef, ast.AsyncFunctionDef)):
                    continue
                keywords = _api_keywords(node)
                if keywords is None:
                    continue
                try:
                    endpoints.append(self._endpoint(pkg, f, node, keywords))
                except DECLARATION_ERRORS as e:
                    self.ctx.errors.add(f"cannot parse endpoint {node.name}: {e}", f.path, node.lineno)
        return endpoints

    def parse_types(self, pkg: PackageInfo) -> list[TypeDecl]:
        """Return struct classes and type aliases in source order."""
        known = self._known[pkg.path]
        decls = []
        for f in pkg.files:
            for node in self._trees[f.path].body:
                try:
                    decl = self._type_decl(node, f, known)
                except DECLARATION_ERRORS as e:
                    name = node.name if isinstance(node, ast.ClassDef) else ast.unparse(node.target)
                    self.ctx.errors.add(f"cannot parse type {name}: {e}", f.path, node.lineno)
                    continue
                if decl is not None:
                    decls.append(decl)
        return decls

    def _type_decl(self, node: ast.stmt, f: SourceFile, known: dict[str, str]) -> TypeDecl | None:
        if isinstance(node, ast.ClassDef) and _is_struct(node):
            fields = tuple(fld for fld, _ in self._fields(node, f, known))
            return TypeDecl(
                name=node.name,
                file=f.path,
                line=node.lineno,
                type=StructType(fields=fields),
                doc=ast.get_docstring(node) or "",
            )
        if _is_type_alias(node):
            return TypeDecl(
                name=node.target.id,
                file=f.path,
                line=node.lineno,
                type=_type_ref(node.value, known),
            )
        return None

    def _index(self, pkg: PackageInfo) -> None:
        classes = {}
        known = {}
        for f in pkg.files:
            for node in self._trees[f.path].body:
                if isinstance(node, ast.ClassDef) and _is_struct(node):
                    classes[node.name] = (node, f)
                    known[node.name] = ast.get_docstring(node) or ""
                elif _is_type_alias(node):
                    known[node.target.id] = ""
        self._classes[pkg.path] = classes
        self._known[pkg.path] = known

    def _endpoint(self, pkg: PackageInfo, f: SourceFile, node: ast.FunctionDef,
                  keywords: list[ast.keyword]) -> EndpointDecl:
        known = self._known[pkg.path]
        opts = self._options(keywords, f.path)

        args = node.args.posonlyargs + node.args.args + node.args.kwonlyargs
        args_by_name = {a.arg: a for a in args}
        raw_path = opts.get("path") or f"/{pkg.name}.{node.name}"
        segments = self._path(str(raw_path), args_by_name, known, f.path, node.lineno)
        segment_names = {s.value for s in segments if s.type != "literal"}

        request = None
        request_args = [a for a in args if a.arg not in segment_names]
        if len(request_args) > 1:
            self.ctx.errors.add(
                f"endpoint {node.name}: expected at most one request parameter besides "
                f"path parameters, got {len(request_args)}",
                f.path, node.lineno,
            )
        if request_args:
            request = _type_ref(request_args[-1].annotation, known)

        response = None
        if node.returns is not None and not _is_none(node.returns):
            response = _type_ref(node.returns, known)

        methods = self._methods(opts.get("method"), request, f.path, node.lineno)
        if opts.get("auth"):
            access = "auth"
        elif opts.get("expose"):
            access = "public"
        else:
            access = "private"

        request_location = "query" if methods and methods[0] in QUERY_METHODS else "body"
        return EndpointDecl(
            name=node.name,
            file=f.path,
            line=node.lineno,
            doc=ast.get_docstring(node) or "",
            http_methods=methods,
            access=access,
            path=segments,
            request=request,
            response=response,
            request_encoding=self._encoding(pkg, request, request_location),
            response_encoding=self._encoding(pkg, response, "body"),
        )

    def _options(self, keywords: list[ast.keyword], path: Path) -> dict:
        opts = {}
        for kw in keywords:
            if kw.arg is None:
                continue
            try:
                opts[kw.arg] = ast.literal_eval(kw.value)
            except (ValueError, TypeError):
                self.ctx.errors.add(f"@api option {kw.arg!r} must be a literal", path, kw.value.lineno)
        return opts

    def _methods(self, value, request: TypeRef | None, path: Path, line: int) -> list[str]:
        if value is None:
            return ["POST" if request is not None else "GET"]
        if isinstance(value, str):
            value = value.split(",")
        if not isinstance(value, (list, tuple)) or not all(isinstance(m, str) for m in value):
            self.ctx.errors.add("@api method must be a string or a list of strings", path, line)
            return []

        methods = []
        for m in value:
            m = m.strip().upper()
            if m in HTTP_METHODS:
                methods.append(m)
            elif m:
                self.ctx.errors.add(f"invalid HTTP method {m!r}", path, line)
        return methods

    def _path(self, raw: str, args: dict[str, ast.arg], known: dict[str, str],
              path: Path, line: int) -> list[PathSegmentDecl]:
        if not raw.startswith("/"):
            self.ctx.errors.add(f"invalid path {raw!r}: must begin with '/'", path, line)

        segments = []
        seen = set()
        for part in raw.strip("/").split("/"):
            if not part:
                continue
            kind = SEGMENT_PREFIXES.get(part[0], "literal")
            if kind == "literal":
                segments.append(PathSegmentDecl(type=kind, value=part))
                continue

            name = part[1:]
            if name in seen:
                self.ctx.errors.add(f"duplicate path parameter {name!r} in {raw!r}", path, line)
            seen.add(name)
            arg = args.get(name)
            if arg is not None and arg.annotation is not None:
                value_type = _type_ref(arg.annotation, known)
            else:
                value_type = BuiltinType("str")
            segments.append(PathSegmentDecl(type=kind, value=name, value_type=value_type))
        return segments

    def _encoding(self, pkg: PackageInfo, ref: TypeRef | None,
                  default_location: str) -> list[ParameterEncoding] | None:
        named = deref(ref)
        if not isinstance(named, NamedType):
            return None
        cls = self._classes[pkg.path].get(named.name)
        if cls is None:
            return None

        node, f = cls
        params = []
        for fld, marker in self._fields(node, f, self._known[pkg.path]):
            location, wire_name = marker or (default_location, None)
            params.append(ParameterEncoding(
                src_name=fld.name,
                wire_name=wire_name or fld.name,
                location=location,
                type=fld.type,
                doc=fld.doc,
            ))
        return params or None

    def _fields(self, node: ast.ClassDef, f: SourceFile,
                known: dict[str, str]) -> list[tuple[StructField, tuple[str, str | None] | None]]:
        lines = f.source.splitlines()
        fields = []
        for i, stmt in enumerate(node.body):
            if not _is_field(stmt):
                continue
            following = node.body[i + 1] if i + 1 < len(node.body) else None
            if (isinstance(following, ast.Expr) and isinstance(following.value, ast.Constant)
                    and isinstance(following.value.value, str)):
                doc = inspect.cleandoc(following.value.value)
            else:
                doc = _trailing_comment(lines, stmt)
            fld = StructField(name=stmt.target.id, type=_type_ref(stmt.annotation, known), doc=doc)
            fields.append((fld, _wire_marker(stmt.annotation)))
        return fields


def _is_test_file(path: Path) -> bool:
    name = path.name
    return name.startswith("test_") or name.endswith("_test.py") or name == "conftest.py"


def _base_name(node: ast.expr) -> str:
    if isinstance(node, ast.Name):
        return node.id
    if isinstance(node, ast.Attribute):
        return node.attr
    if isinstance(node, ast.Call):
        return _base_name(node.func)
    if isinstance(node, ast.Subscript):
        return _base_name(node.value)
    return ""


def _is_none(node: ast.expr) -> bool:
    return isinstance(node, ast.Constant) and node.value is None


def _api_keywords(node: ast.FunctionDef) -> list[ast.keyword] | None:
    for dec in node.decorator_list:
        if _base_name(dec) != "api":
            continue
        if isinstance(dec, ast.Call):
            return dec.keywords
        return []
    return None


def _is_field(stmt: ast.stmt) -> bool:
    return (isinstance(stmt, ast.AnnAssign) and isinstance(stmt.target, ast.Name)
            and _base_name(stmt.annotation) != "ClassVar")


def _is_struct(node: ast.ClassDef) -> bool:
    bases = {_base_name(b) for b in node.bases}
    if bases & ENUM_BASES:
        return False
    if bases & STRUCT_BASES:
        return True
    if any(_base_name(d) == "dataclass" for d in node.decorator_list):
        return True
    return any(_is_field(stmt) for stmt in node.body)


def _is_type_alias(node: ast.stmt) -> bool:
    return (isinstance(node, ast.AnnAssign) and isinstance(node.target, ast.Name)
            and node.value is not None and _base_name(node.annotation) == "TypeAlias")


def _trailing_comment(lines: list[str], stmt: ast.stmt) -> str:
    # end_col_offset counts UTF-8 bytes
    line = lines[stmt.end_lineno - 1].encode("utf-8")
    rest = line[stmt.end_col_offset:].decode("utf-8").strip()
    if rest.startswith("#"):
        return rest[1:].strip()
    return ""


def _subscript_args(node: ast.Subscript) -> list[ast.expr]:
    if isinstance(node.slice, ast.Tuple):
        return list(node.slice.elts)
    return [node.slice]


def _type_ref(node: ast.expr | None, known: dict[str, str]) -> TypeRef:
    """Convert an annotation into a type reference."""
    if node is None:
        return BuiltinType("Any")
    if isinstance(node, ast.Constant):
        if node.value is None:
            return BuiltinType("None")
        if isinstance(node.value, str):
            # forward reference
            try:
                return _type_ref(ast.parse(node.value, mode="eval").body, known)
            except SyntaxError:
                return BuiltinType(node.value)
    if isinstance(node, ast.Name):
        if node.id in BUILTIN_TYPES:
            return BuiltinType(node.id)
        return NamedType(name=node.id, doc=known.get(node.id, ""))
    if isinstance(node, ast.Attribute):
        return NamedType(name=ast.unparse(node))
    if isinstance(node, ast.BinOp) and isinstance(node.op, ast.BitOr):
        if _is_none(node.right):
            return PointerType(_type_ref(node.left, known))
        if _is_none(node.left):
            return PointerType(_type_ref(node.right, known))
    if isinstance(node, ast.Subscript) and _subscript_args(node):
        base = _base_name(node.value)
        args = _subscript_args(node)
        if base == "Annotated":
            return _type_ref(args[0], known)
        if base == "Optional":
            return PointerType(_type_ref(args[0], known))
        if base == "Union" and len(args) == 2 and any(_is_none(a) for a in args):
            other = args[1] if _is_none(args[0]) else args[0]
            return PointerType(_type_ref(other, known))
        if base in LIST_NAMES:
            return ListType(_type_ref(args[0], known))
        if base in MAP_NAMES and len(args) == 2:
            return MapType(_type_ref(args[0], known), _type_ref(args[1], known))
    return BuiltinType(ast.unparse(node))


def _wire_marker(annotation: ast.expr) -> tuple[str, str | None] | None:
    """Find a ``Header(...)``/``Query(...)`` marker inside ``Annotated[...]``."""
    if not isinstance(annotation, ast.Subscript) or _base_name(annotation.value) != "Annotated":
        return None
    for meta in _subscript_args(annotation)[1:]:
        if not isinstance(meta, ast.Call) or _base_name(meta.func) not in WIRE_MARKERS:
            continue
        location = WIRE_MARKERS[_base_name(meta.func)]
        name = None
        if meta.args and isinstance(meta.args[0], ast.Constant) and isinstance(meta.args[0].value, str):
            name = meta.args[0].value
        for kw in meta.keywords:
            if kw.arg == "name" and isinstance(kw.value, ast.Constant):
                name = kw.value.value
        return location, name
    return None
