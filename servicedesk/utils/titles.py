# servicedesk/utils/titles.py
import re

# One "Follow up:" or "Follow up (n):" prefix, any case
_PREFIX = re.compile(r"^\s*follow\s*up\s*(?:\(\s*(\d+)\s*\))?\s*:\s*", re.IGNORECASE)


def split_follow_up_title(title: str) -> tuple[int, str]:
    """
    Strips every stacked follow-up prefix from `title`.
    Returns the follow-up depth already present and the bare title.

    "Follow up (2): Printer jam" -> (2, "Printer jam")
    "Follow up: Follow up: X"    -> (2, "X")
    """
    depth = 0
    rest = title or ""
    while True:
        match = _PREFIX.match(rest)
        if not match:
            break
        depth += int(match.group(1)) if match.group(1) else 1
        rest = rest[match.end():]
    return depth, rest.strip()


def follow_up_title(title: str) -> str:
    """Title for the next follow-up of a ticket titled `title`."""
    depth, base = split_follow_up_title(title)
    depth += 1
    if depth == 1:
        return f"Follow up: {base}"
    return f"Follow up ({depth}): {base}"
