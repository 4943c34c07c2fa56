"""Pattern matching over pipeline steps.

A step is identified by the text found in a fixed set of its fields rather
than by one canonical key: older pipelines name the scanner in the task id,
in an inline shell command, or only in an input value such as
``artifactName``.  The fields consulted are listed in ``IDENTITY_FIELDS``,
``LABEL_FIELDS``, ``COMMAND_FIELDS`` and ``PARAMETER_FIELDS``.  ``env`` is
never consulted.
"""
from __future__ import annotations

import re
from typing import Any, Iterable, Iterator, List, Sequence

IDENTITY_FIELDS = ("task", "uses", "template")
LABEL_FIELDS = ("displayName", "name")
COMMAND_FIELDS = ("script", "bash", "pwsh", "powershell", "run", "sh")
# One level of string values only
PARAMETER_FIELDS = ("inputs", "with")

DEFAULT_TARGET_PATTERNS: List[str] = [
    r"\bsynopsyspolaris@",
    r"synopsys-sig/synopsys-action",
    r"(?:^|[\s/'\"])polaris(?:\.exe)?\s+(?:-c\b|--co\b|analyze\b|capture\b|--config\b)",
    # Jenkins plugin steps
    r"\bpolaris\s*\(?\s*polariscli\s*:",
    r"\bsynopsys_scan\b[^\n]*polaris",
]

DEFAULT_MARKER_PATTERNS: List[str] = [
    r"\bblackducksecurityscan@",
    r"\bblackduckcoverityonpolaris@",
    r"blackduck-inc/black-duck-security-scan",
    r"\bsecurity_scan\b",
]


class Matcher:
    """A compiled, case-insensitive union of regular expressions."""

    def __init__(self, patterns: Iterable[str]) -> None:
        self.patterns = [p for p in patterns if p]
        if self.patterns:
            joined = "|".join(f"(?:{p})" for p in self.patterns)
            self._regex = re.compile(joined, re.IGNORECASE | re.MULTILINE)
        else:
            self._regex = None

    def __repr__(self) -> str:
        return f"Matcher({self.patterns!r})"

    def search(self, text: str) -> bool:
        if self._regex is None or not text:
            return False
        return self._regex.search(text) is not None


def step_evidence(step: Any) -> str:
    """Return the case-folded text blob used to identify *step*."""
    if not isinstance(step, dict):
        return ""
    parts: List[str] = []
    for key in IDENTITY_FIELDS + LABEL_FIELDS + COMMAND_FIELDS:
        value = step.get(key)
        if isinstance(value, str):
            parts.append(value)
    for key in PARAMETER_FIELDS:
        params = step.get(key)
        if isinstance(params, dict):
            parts.extend(v for v in params.values() if isinstance(v, str))
    return "\n".join(parts).casefold()


def iter_steps(node: Any) -> Iterator[dict]:
    """Yield every step mapping found in a ``steps`` sequence under *node*.

    The walk stays inside *node*'s own subtree, so a stage only ever sees its
    own jobs, including deployment jobs that nest steps under ``strategy``.
    """
    if isinstance(node, dict):
        for key, value in node.items():
            if key == "steps" and isinstance(value, list):
                for step in value:
                    if isinstance(step, dict):
                        yield step
                        # Step templates may carry their own steps
                        yield from iter_steps(step)
            else:
                yield from iter_steps(value)
    elif isinstance(node, list):
        for item in node:
            yield from iter_steps(item)


def any_step_matches(node: Any, matcher: Matcher) -> bool:
    return any(matcher.search(step_evidence(st)) for st in iter_steps(node))


def as_patterns(value: Any, default: Sequence[str]) -> List[str]:
    """Normalize a configured pattern value (string, list or None)."""
    if value is None:
        return list(default)
    if isinstance(value, str):
        return [value]
    return [str(v) for v in value]
