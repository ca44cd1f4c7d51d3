"""Maps source files onto the targets being synchronized."""

from pathlib import Path

from api_doc_sync.parser.errors import ErrorList
from api_doc_sync.sync.models import Target


class Overlays:
    """Resolves target files and serves their contents.

    A target carrying ``source`` shadows the file on disk, which lets
    callers synchronize edits that have not been saved yet.
    """

    def __init__(self, app_root: Path, targets: list[Target]):
        self.app_root = app_root.resolve()
        self.targets = targets
        self._by_path: dict[Path, Target] = {}
        for target in targets:
            self._by_path.setdefault(self.resolve(target.file), target)

    def resolve(self, file: str | Path) -> Path:
        return (self.app_root / file).resolve()

    def get(self, path: Path) -> Target | None:
        return self._by_path.get(path.resolve())

    def pkg_paths(self) -> list[str]:
        """Package directories holding target files, relative to the app root."""
        dirs = {path.parent for path in self._by_path}
        return sorted(self._relative(d) for d in dirs)

    def read_file(self, path: Path) -> str:
        target = self.get(path)
        if target is not None and target.source is not None:
            return target.source
        return path.read_text(encoding="utf-8")

    def overlay_files(self, directory: Path) -> list[Path]:
        directory = directory.resolve()
        return [
            path for path, target in self._by_path.items()
            if target.source is not None and path.parent == directory
        ]

    def validation_errors(self, errs: ErrorList) -> list[str]:
        """Render diagnostics as ``file:line: message`` strings."""
        rendered = []
        for d in errs:
            if d.file is None:
                rendered.append(d.message)
            elif d.line is None:
                rendered.append(f"{self._relative(d.file)}: {d.message}")
            else:
                rendered.append(f"{self._relative(d.file)}:{d.line}: {d.message}")
        return rendered

    def _relative(self, path: Path) -> str:
        try:
            return path.relative_to(self.app_root).as_posix()
        except ValueError:
            return path.as_posix()
