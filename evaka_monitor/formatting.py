"""Pure helpers turning raw commit metadata into short, readable strings.

`normalize_commit_message` collapses boilerplate commit messages (merge
commits, Renovate/Dependabot bumps, co-author trailers) into one bounded line.
`format_age` and `age_in_days` render how long ago a commit was made.
"""

from __future__ import annotations

import re
from datetime import datetime, timezone

__all__ = [
    "DEFAULT_MAX_MESSAGE_LENGTH",
    "age_in_days",
    "format_age",
    "normalize_commit_message",
    "parse_timestamp",
]

DEFAULT_MAX_MESSAGE_LENGTH = 80
_ELLIPSIS = "..."
# Realistic inputs need a single recursive step (a merge whose title is a bump).
_MAX_DEPTH = 3

_CO_AUTHORED_RE = re.compile(r"\n\nCo-authored-by:.+$", re.DOTALL)
_MERGE_WITH_TITLE_RE = re.compile(r"^Merge pull request #\d+ from .+?\n\n(.+)$", re.DOTALL)
_MERGE_SUBMODULE_RE = re.compile(
    r"^Merge pull request #\d+ from .+/dependabot/submodules/evaka-([a-f0-9]+)$"
)
_MERGE_BRANCH_RE = re.compile(r"^Merge pull request #\d+ from [^/]+/(.+)$")
_DEPENDENCY_RE = re.compile(r"^Update dependency (.+) to (v[\d.]+)")
_EVAKA_BUMP_RE = re.compile(r"^Bump evaka from `([a-f0-9]+)` to `([a-f0-9]+)`")

_MINUTE = 60
_HOUR = 60 * _MINUTE
_DAY = 24 * _HOUR


def _first_line(text: str) -> str:
    return text.split("\n", 1)[0]


def _truncate(text: str, *, limit: int) -> str:
    if len(text) <= limit:
        return text
    return text[: max(0, limit - len(_ELLIPSIS))] + _ELLIPSIS


def normalize_commit_message(
    message: str | None,
    *,
    max_length: int = DEFAULT_MAX_MESSAGE_LENGTH,
    _depth: int = 0,
) -> str:
    """Return a single-line summary of a commit message.

    Rules are tried in order and the first match wins:

    - merge commit with a title line: the title, normalized again
    - Dependabot submodule merge without a title: ``bump: evaka (→ <sha>)``
    - other merge without a title: the branch name as words
    - ``Update dependency <pkg> to v<x.y.z>``: ``bump: <pkg> <version>``
    - ``Bump evaka from `<a>` to `<b>```: ``bump: evaka (<a> → <b>)``
    - anything else: the first line, cut to `max_length` characters
    """

    if not message:
        return ""

    cleaned = _CO_AUTHORED_RE.sub("", message.replace("\r\n", "\n"))

    if _depth < _MAX_DEPTH:
        match = _MERGE_WITH_TITLE_RE.match(cleaned)
        if match:
            return normalize_commit_message(match.group(1), max_length=max_length, _depth=_depth + 1)

    match = _MERGE_SUBMODULE_RE.match(cleaned)
    if match:
        return f"bump: evaka (→ {match.group(1)[:7]})"

    match = _MERGE_BRANCH_RE.match(cleaned)
    if match:
        branch = match.group(1).replace("-", " ").replace("/", " ")
        return _truncate(branch, limit=max_length)

    match = _DEPENDENCY_RE.match(cleaned)
    if match:
        package, version = match.groups()
        return f"bump: {package} {version}"

    match = _EVAKA_BUMP_RE.match(cleaned)
    if match:
        return f"bump: evaka ({match.group(1)[:7]} → {match.group(2)[:7]})"

    return _truncate(_first_line(cleaned), limit=max_length)


def parse_timestamp(value: str | datetime) -> datetime:
    """Parse an ISO-8601 timestamp; naive values are taken as UTC."""

    if isinstance(value, datetime):
        parsed = value
    else:
        text = (value or "").strip()
        if not text:
            raise ValueError("Timestamp must be non-empty.")
        if text.endswith(("Z", "z")):
            text = text[:-1] + "+00:00"
        parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _elapsed_seconds(date: str | datetime, now: datetime | None) -> float:
    reference = parse_timestamp(now) if now is not None else datetime.now(timezone.utc)
    return max(0.0, (reference - parse_timestamp(date)).total_seconds())


def age_in_days(date: str | datetime, now: datetime | None = None) -> int:
    """Return the number of whole days since `date` (never negative)."""
    return int(_elapsed_seconds(date, now) // _DAY)


def _plural(count: int, unit: str) -> str:
    suffix = "" if count == 1 else "s"
    return f"{count} {unit}{suffix} ago"


def format_age(date: str | datetime, now: datetime | None = None) -> str:
    """Render the time since `date` as a relative label such as ``3 days ago``."""

    seconds = _elapsed_seconds(date, now)
    if seconds < _MINUTE:
        return "just now"
    if seconds < _HOUR:
        return _plural(int(seconds // _MINUTE), "minute")
    if seconds < _DAY:
        return _plural(int(seconds // _HOUR), "hour")
    days = int(seconds // _DAY)
    if days < 30:
        return _plural(days, "day")
    if days < 365:
        return _plural(days // 30, "month")
    return _plural(days // 365, "year")
