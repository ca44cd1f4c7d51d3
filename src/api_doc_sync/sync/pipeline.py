"""Synchronization pipeline: packages -> declarations -> target records."""

import logging
import threading
from collections.abc import Callable
from pathlib import Path

from api_doc_sync.parser.base import Declaration, PackageInfo, ParseContext, SourceParser
from api_doc_sync.parser.errors import ErrorList, ParseBailout
from api_doc_sync.parser.pysource import PySourceParser
from api_doc_sync.sync.correlate import correlate
from api_doc_sync.sync.models import EndpointRecord, SyncResult, Target
from api_doc_sync.sync.overlay import Overlays

logger = logging.getLogger(__name__)

DEFAULT_MAX_ERRORS = 20

ParserFactory = Callable[[ParseContext], SourceParser]


def synchronize(
    app_root: Path,
    targets: list[Target],
    *,
    parser_factory: ParserFactory = PySourceParser,
    cancel: threading.Event | None = None,
    max_errors: int = DEFAULT_MAX_ERRORS,
    parse_tests: bool = False,
) -> SyncResult:
    """Fill in endpoint metadata for every target from the app's source.

    Never raises: parse failures end up in ``validation_errors`` and the
    result carries whatever was correlated before the failure.
    """
    overlays = Overlays(app_root, targets)
    errs = ErrorList(max_errors=max_errors)
    ctx = ParseContext(
        app_root=overlays.app_root,
        errors=errs,
        overlay=overlays,
        parse_tests=parse_tests,
        cancel=cancel,
    )
    records = {overlays.resolve(t.file): EndpointRecord() for t in targets}
    complete = True

    try:
        parser = parser_factory(ctx)
        for pkg_path in overlays.pkg_paths():
            if ctx.cancelled:
                errs.record("synchronization cancelled")
                complete = False
                break
            try:
                pkg = parser.load_package(pkg_path)
                if pkg is None:
                    continue
                decls = _discover(parser, pkg)
            except ParseBailout as e:
                logger.warning("Aborted package %s: %s", pkg_path, e)
                errs.record(f"aborted parsing package {pkg_path!r}: {e}")
                complete = False
                continue
            for decl in decls:
                _apply(decl, records, errs)
    except Exception as e:
        logger.exception("Synchronization failed")
        errs.record(f"internal error: {e}")
        complete = False

    merged = [
        t.model_copy(update={"endpoint": records[overlays.resolve(t.file)]})
        for t in targets
    ]
    return SyncResult(
        targets=merged,
        validation_errors=overlays.validation_errors(errs),
        complete=complete,
    )


def _discover(parser: SourceParser, pkg: PackageInfo) -> list[Declaration]:
    # endpoints first, so their types win over the plain struct sweep
    endpoints = parser.parse_endpoints(pkg)
    types = parser.parse_types(pkg)
    logger.debug("Package %s: %d endpoints, %d types", pkg.path, len(endpoints), len(types))
    return [*endpoints, *types]


def _apply(decl: Declaration, records: dict[Path, EndpointRecord], errs: ErrorList) -> None:
    try:
        result = correlate(decl, records)
    except ValueError as e:
        errs.record(f"cannot correlate {decl.name}: {e}", decl.file, decl.line)
        return
    if result is None:
        return
    records[result.file] = result.record
    for problem in result.problems:
        errs.record(problem, decl.file, decl.line)
