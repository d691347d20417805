"""Checklist view over the to-do note's Markdown content."""

import io

from notesnook_archive.models.note import TodoItem

_DONE_PREFIXES = ("- [x] ", "- [X] ")
_PENDING_PREFIX = "- [ ] "


def parse_items(content: str, *, now: str) -> list[TodoItem]:
    """Read checklist items from note content.

    ``- [x]`` lines are done, ``- [ ]`` and plain ``- `` bullets are pending.
    Other lines (headings, prose) are ignored.
    """
    items: list[TodoItem] = []
    for line in content.split("\n"):
        trimmed = line.strip()
        if trimmed.startswith(_DONE_PREFIXES):
            items.append(TodoItem(text=trimmed[6:], done=True, added_at=now))
        elif trimmed.startswith(_PENDING_PREFIX):
            items.append(TodoItem(text=trimmed[6:], done=False, added_at=now))
        elif trimmed.startswith("- ") and len(trimmed) > 2:
            items.append(TodoItem(text=trimmed[2:], done=False, added_at=now))
    return items


def serialize_items(items: list[TodoItem]) -> str:
    return "\n".join(f"- [x] {i.text}" if i.done else f"- [ ] {i.text}" for i in items)


def _matches(item: TodoItem, snippet: str) -> bool:
    return snippet.lower() in item.text.lower()


def apply_update(
    items: list[TodoItem],
    *,
    now: str,
    add: list[str] | None = None,
    complete: list[str] | None = None,
    remove: list[str] | None = None,
    replace_all: list[str] | None = None,
) -> list[TodoItem]:
    """Return the item list after an update request.

    replace_all discards everything else. Otherwise items are added first,
    then completed, then removed; complete and remove match by
    case-insensitive substring.
    """
    if replace_all is not None:
        return [TodoItem(text=text, done=False, added_at=now) for text in replace_all]

    result = list(items)
    for text in add or []:
        result.append(TodoItem(text=text, done=False, added_at=now))
    for snippet in complete or []:
        for item in result:
            if _matches(item, snippet):
                item.done = True
    for snippet in remove or []:
        result = [i for i in result if not _matches(i, snippet)]
    return result


def render_markdown(title: str, items: list[TodoItem]) -> str:
    """Render the list with pending and done sections."""
    pending = [i for i in items if not i.done]
    done = [i for i in items if i.done]

    out = io.StringIO()
    out.write(f"# {title}\n")
    out.write(f"\n**Pending ({len(pending)}):**\n")
    for item in pending:
        out.write(f"- [ ] {item.text}\n")
    out.write(f"\n**Done ({len(done)}):**\n")
    for item in done:
        out.write(f"- [x] {item.text}\n")
    return out.getvalue()
