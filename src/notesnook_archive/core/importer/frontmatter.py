"""Parse the restricted front-matter header Notesnook puts on exported notes.

The header is a block of ``key: value`` lines between two ``---`` lines at
the very top of the file. Values wrapped in ``[...]`` are comma-separated
lists. Anything malformed is skipped rather than rejected: a file whose
header never closes is treated as having no header at all.
"""

from dataclasses import dataclass, field

from notesnook_archive.config import FRONTMATTER_SEPARATOR

FrontMatterValue = str | list[str]


@dataclass(frozen=True)
class FrontMatter:
    """Result of splitting a document into header metadata and body."""

    meta: dict[str, FrontMatterValue] = field(default_factory=dict)
    body: str = ""
    raw_front_matter: str = ""


def _is_separator(line: str) -> bool:
    return line.rstrip("\r\n") == FRONTMATTER_SEPARATOR


def _parse_value(raw_value: str) -> FrontMatterValue:
    if raw_value.startswith("[") and raw_value.endswith("]"):
        return [item.strip() for item in raw_value[1:-1].split(",") if item.strip()]
    return raw_value


def parse_header_lines(lines: list[str]) -> dict[str, FrontMatterValue]:
    """Parse ``key: value`` lines, skipping anything without a key."""
    meta: dict[str, FrontMatterValue] = {}
    for line in lines:
        key, sep, raw_value = line.partition(":")
        if not sep:
            continue
        key = key.strip()
        if not key:
            continue
        meta[key] = _parse_value(raw_value.strip())
    return meta


def parse_front_matter(raw: str) -> FrontMatter:
    """Split raw file text into metadata, body and the verbatim header.

    Never raises. Returns empty metadata and the full text as body when the
    text has no complete header block.
    """
    lines = raw.splitlines(keepends=True)
    if not lines or not _is_separator(lines[0]):
        return FrontMatter(body=raw)

    for index in range(1, len(lines)):
        if _is_separator(lines[index]):
            close_index = index
            break
    else:
        return FrontMatter(body=raw)

    header_lines = [line.rstrip("\r\n") for line in lines[1:close_index]]
    header_end = sum(len(line) for line in lines[:close_index]) + len(
        lines[close_index].rstrip("\r\n")
    )
    return FrontMatter(
        meta=parse_header_lines(header_lines),
        body=raw[header_end:].lstrip(),
        raw_front_matter=raw[:header_end],
    )


def compose_document(raw_front_matter: str, body: str) -> str:
    """Inverse of parse_front_matter: put the verbatim header back above the body."""
    if not raw_front_matter:
        return body
    return f"{raw_front_matter}\n\n{body}"


def _format_value(value: FrontMatterValue) -> str:
    if isinstance(value, list):
        return "[" + ", ".join(value) + "]"
    return value


def set_header_values(raw_front_matter: str, values: dict[str, FrontMatterValue]) -> str:
    """Rewrite the given keys in a verbatim header, leaving every other line alone.

    Only keys already present are touched; an empty header stays empty.
    """
    if not raw_front_matter:
        return raw_front_matter
    newline = "\r\n" if "\r\n" in raw_front_matter else "\n"
    lines = raw_front_matter.split(newline)
    for index in range(1, len(lines) - 1):
        key, sep, _ = lines[index].partition(":")
        key = key.strip()
        if sep and key in values:
            lines[index] = f"{key}: {_format_value(values[key])}"
    return newline.join(lines)
