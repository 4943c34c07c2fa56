"""Stage rewrite for declarative Jenkinsfiles.

Jenkinsfiles are Groovy, so instead of a YAML tree the rewrite works on
``stage('name') { ... }`` blocks located by brace matching.  String literals
and comments are skipped while counting braces.  The semantics mirror
:meth:`pipeline_migrate.rewriter.PipelineRewriter.rewrite` for stage lists:
all Polaris stage blocks are removed and the replacement stage is inserted
where the first one was.  Stages nest (``parallel`` and ``stages`` bodies),
so a Polaris stage is always the innermost block that matches; its parent and
siblings stay.
"""
from __future__ import annotations

import re
import textwrap
from dataclasses import dataclass
from typing import List, Optional

from .errors import MalformedDocument
from .matching import Matcher

_STAGE_HEAD = re.compile(r"stage\s*\(\s*(['\"])([^'\"\n]*)\1\s*\)\s*\{")


@dataclass
class StageBlock:
    name: str
    start: int
    end: int
    indent: str
    text: str


def _skip_non_code(text: str, i: int) -> Optional[int]:
    """Return the index after a comment or string literal starting at *i*."""
    if text.startswith("//", i):
        nl = text.find("\n", i)
        return len(text) if nl < 0 else nl
    if text.startswith("/*", i):
        close = text.find("*/", i + 2)
        if close < 0:
            raise MalformedDocument(f"unterminated comment at offset {i}")
        return close + 2
    for quote in ('"""', "'''"):
        if text.startswith(quote, i):
            close = text.find(quote, i + 3)
            if close < 0:
                raise MalformedDocument(f"unterminated string at offset {i}")
            return close + 3
    ch = text[i]
    if ch in ("'", '"'):
        j = i + 1
        while j < len(text):
            if text[j] == "\\":
                j += 2
                continue
            if text[j] == ch:
                return j + 1
            if text[j] == "\n":
                break
            j += 1
        raise MalformedDocument(f"unterminated string at offset {i}")
    return None


def _matching_brace(text: str, pos: int) -> int:
    depth = 0
    i = pos
    while i < len(text):
        skip = _skip_non_code(text, i)
        if skip is not None:
            i = skip
            continue
        ch = text[i]
        if ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
            if depth == 0:
                return i
        i += 1
    raise MalformedDocument(f"unbalanced braces after offset {pos}")


def find_stage_blocks(text: str) -> List[StageBlock]:
    """Return every ``stage(...) { }`` block in document order.

    A block nested in another stage comes after its parent.
    """
    blocks: List[StageBlock] = []
    i = 0
    while i < len(text):
        skip = _skip_non_code(text, i)
        if skip is not None:
            i = skip
            continue
        m = _STAGE_HEAD.match(text, i)
        if m is None or (i > 0 and (text[i - 1].isalnum() or text[i - 1] == "_")):
            i += 1
            continue
        close = _matching_brace(text, m.end() - 1)
        line_start = text.rfind("\n", 0, i) + 1
        prefix = text[line_start:i]
        start = line_start if not prefix.strip() else i
        end = close + 1
        # Swallow the rest of the closing line
        while end < len(text) and text[end] in " \t":
            end += 1
        if end < len(text) and text[end] == "\n":
            end += 1
        blocks.append(
            StageBlock(
                name=m.group(2),
                start=start,
                end=end,
                indent=prefix if not prefix.strip() else "",
                text=text[start:end],
            )
        )
        i = m.end()
    return blocks


def _encloses(outer: StageBlock, inner: StageBlock) -> bool:
    return outer is not inner and outer.start <= inner.start and inner.end <= outer.end


def _reindent(snippet: str, indent: str) -> str:
    body = textwrap.dedent(snippet).strip("\n")
    return textwrap.indent(body, indent) + "\n"


def rewrite_jenkinsfile(text: str, target: Matcher, markers: Matcher, replacement: str) -> str:
    """Return *text* with Polaris stages replaced by *replacement*.

    Unchanged text is returned when no stage block matches *target*.  When a
    stage matching *markers* already exists the Polaris stages are removed
    and nothing is inserted.
    """
    blocks = find_stage_blocks(text)
    matching = [b for b in blocks if target.search(b.text) and not markers.search(b.text)]
    targets = [b for b in matching if not any(_encloses(b, other) for other in matching)]
    if not targets:
        return text
    present = any(markers.search(b.text) for b in blocks)
    pieces: List[str] = []
    cursor = 0
    for idx, block in enumerate(targets):
        pieces.append(text[cursor:block.start])
        if idx == 0 and not present:
            pieces.append(_reindent(replacement, block.indent))
        cursor = block.end
    pieces.append(text[cursor:])
    return "".join(pieces)
