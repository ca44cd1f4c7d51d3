"""Labeled section extraction for free-form doc comments.

Recognizes a block such as::

    errors:
    - NotFound: no such user
    - Internal: the database
      went away

and splits it out of the surrounding prose.
"""

from pydantic import BaseModel


class AnnotationEntry(BaseModel):
    """A single key/value entry recognized inside a labeled section."""

    key: str
    doc: str


def extract_section(text: str, label: str) -> tuple[str, list[AnnotationEntry]]:
    """Extract the section introduced by ``label:`` from text.

    Returns the text with the section removed, and the section's entries
    in the order they appear. Text without the label is returned unchanged.
    """
    lines = text.split("\n")
    start = _find_label(lines, label)
    if start is None:
        return text, []

    entries: list[AnnotationEntry] = []
    end = start  # last consumed line
    blank_run = 0
    for i in range(start + 1, len(lines)):
        raw = lines[i]
        line = raw.strip()
        if not line:
            blank_run += 1
            if blank_run == 2:
                break
            continue
        blank_run = 0

        key, sep, value = line.partition(":")
        if sep:
            entries.append(AnnotationEntry(key=key.removeprefix("-").strip(), doc=value.strip()))
        elif line.startswith("-") or raw[:1].isspace():
            if entries:
                entries[-1].doc = f"{entries[-1].doc}\n{line}".strip()
        else:
            break
        end = i

    remainder = lines[:start] + lines[end + 1:]
    return "\n".join(remainder), entries


def _find_label(lines: list[str], label: str) -> int | None:
    prefix = label + ":"
    for i, line in enumerate(lines):
        if line.strip().startswith(prefix):
            return i
    return None
