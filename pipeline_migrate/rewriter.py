"""Stage and step level rewrite of a parsed pipeline document.

The rewriter removes every stage (or root-level step) that runs the Polaris
scanner and splices the replacement stages in at the position the first
removed item occupied:

* ``stages: [A, B*, C]`` with replacement ``[X]`` becomes ``[A, X, C]``.
* ``steps: [s1, s2*, s3]`` becomes ``stages: [LegacyPre, X, LegacyPost]``
  where the legacy stages hold the untouched steps that ran before and after
  the scan.
* A GitHub Actions workflow (``jobs`` is a mapping) keeps its jobs; the
  Polaris steps in ``jobs.<id>.steps`` are removed and the replacement's
  action steps take the place of the first one.

The input document is never mutated.  A document with nothing to migrate is
returned as is.
"""
from __future__ import annotations

import copy
import logging
from typing import Any, Callable, Iterable, List, Optional, Sequence, Tuple

from . import variables as variables_mod
from .errors import MalformedDocument
from .matching import DEFAULT_TARGET_PATTERNS, Matcher, any_step_matches, step_evidence
from .replacements import Replacement

logger = logging.getLogger(__name__)

LEGACY_PRE = "LegacyPre"
LEGACY_POST = "LegacyPost"

Predicate = Callable[[Any], bool]


def classify(node: Any, matcher: Matcher) -> bool:
    """Return True when *node* carries evidence matching *matcher*.

    Stages and jobs (anything holding ``jobs`` or ``steps``) match through the
    steps in their own subtree; anything else is treated as a single step.
    """
    if not isinstance(node, dict):
        return False
    if "jobs" in node or "steps" in node:
        return any_step_matches(node, matcher)
    return matcher.search(step_evidence(node))


def first_match_index(container: Sequence[Any], predicate: Predicate) -> Optional[int]:
    for idx, item in enumerate(container):
        if predicate(item):
            return idx
    return None


def remove_matches(container: Iterable[Any], predicate: Predicate) -> List[Any]:
    return [item for item in container if not predicate(item)]


def _delete_matches(seq: List[Any], predicate: Predicate) -> int:
    # In place, so ruamel sequences keep the comments of surviving items
    removed = 0
    for idx in reversed(range(len(seq))):
        if predicate(seq[idx]):
            del seq[idx]
            removed += 1
    return removed


def _replace_key(mapping: dict, old: str, new: str, value: Any) -> None:
    pos = list(mapping.keys()).index(old)
    del mapping[old]
    if hasattr(mapping, "insert"):
        mapping.insert(pos, new, value)
        return
    items = list(mapping.items())
    items.insert(pos, (new, value))
    mapping.clear()
    mapping.update(items)


def _require_sequence(document: dict, key: str) -> List[Any]:
    value = document[key]
    if not isinstance(value, list):
        raise MalformedDocument(f"'{key}' must be a sequence, got {type(value).__name__}")
    return value


class PipelineRewriter:
    """Replace Polaris stages/steps with a :class:`Replacement`."""

    def __init__(
        self,
        replacement: Replacement,
        target: Optional[Matcher] = None,
        legacy_prefixes: Iterable[str] = variables_mod.DEFAULT_LEGACY_PREFIXES,
        legacy_names: Tuple[str, str] = (LEGACY_PRE, LEGACY_POST),
    ) -> None:
        self.replacement = replacement
        self.target = target or Matcher(DEFAULT_TARGET_PATTERNS)
        self.legacy_prefixes = tuple(legacy_prefixes)
        self.legacy_names = legacy_names

    def is_target(self, node: Any) -> bool:
        """Polaris content that is not part of the replacement itself."""
        return classify(node, self.target) and not classify(node, self.replacement.markers)

    def is_replacement(self, node: Any) -> bool:
        return classify(node, self.replacement.markers)

    def first_match_index(self, container: Sequence[Any]) -> Optional[int]:
        return first_match_index(container, self.is_target)

    def remove_matches(self, container: Iterable[Any]) -> List[Any]:
        return remove_matches(container, self.is_target)

    def count_targets(self, document: Any) -> int:
        """Number of stages (or steps) :meth:`rewrite` would remove."""
        if not isinstance(document, dict):
            return 0
        if _is_workflow(document):
            return sum(
                1 for _, steps in _workflow_steps(document) for st in steps if self.is_target(st)
            )
        for key in ("stages", "steps"):
            items = document.get(key)
            if isinstance(items, list):
                return sum(1 for item in items if self.is_target(item))
        return 0

    def rewrite(self, document: Any) -> Any:
        if not isinstance(document, dict):
            raise MalformedDocument(
                f"pipeline root must be a mapping, got {type(document).__name__}"
            )
        if not isinstance(self.replacement.stages, list):
            raise MalformedDocument("replacement stages must be a sequence")

        if document.get("stages") is not None:
            result = self._rewrite_stages(document)
        elif document.get("steps") is not None:
            result = self._rewrite_steps(document)
        elif _is_workflow(document):
            return self._rewrite_workflow(document)
        else:
            logger.debug("document has neither stages nor steps")
            return document
        if result is None:
            return document
        variables_mod.normalize(result, self.replacement.variables, self.legacy_prefixes)
        if result == document:
            return document
        return result

    def _rewrite_stages(self, document: dict) -> Optional[dict]:
        stages = _require_sequence(document, "stages")
        first = self.first_match_index(stages)
        present = any(self.is_replacement(st) for st in stages)
        if first is None and not present:
            return None
        doc = copy.deepcopy(document)
        if first is None:
            return doc
        seq = doc["stages"]
        removed = _delete_matches(seq, self.is_target)
        logger.debug("removed %d stage(s), first at index %d", removed, first)
        if present:
            logger.debug("replacement already present; not inserting %s", self.replacement.name)
            return doc
        for offset, stage in enumerate(self.replacement.copy_stages()):
            seq.insert(first + offset, stage)
        return doc

    def _rewrite_steps(self, document: dict) -> Optional[dict]:
        steps = _require_sequence(document, "steps")
        first = self.first_match_index(steps)
        present = any(self.is_replacement(st) for st in steps)
        if first is None and not present:
            return None
        doc = copy.deepcopy(document)
        if first is None:
            return doc
        if present:
            _delete_matches(doc["steps"], self.is_target)
            return doc
        steps = doc["steps"]
        before = self.remove_matches(steps[:first])
        after = self.remove_matches(steps[first + 1:])
        pre_name, post_name = self.legacy_names
        new_stages: List[Any] = []
        if before:
            new_stages.append(_legacy_stage(pre_name, "Legacy steps (before scan)", before))
        new_stages.extend(self.replacement.copy_stages())
        if after:
            new_stages.append(_legacy_stage(post_name, "Legacy steps (after scan)", after))
        _replace_key(doc, "steps", "stages", new_stages)
        return doc

    def _rewrite_workflow(self, document: dict) -> dict:
        jobs = _workflow_steps(document)
        first = None
        for job_id, steps in jobs:
            idx = self.first_match_index(steps)
            if idx is not None:
                first = (job_id, idx)
                break
        if first is None:
            return document
        present = any(self.is_replacement(st) for _, steps in jobs for st in steps)
        if not present and not self.replacement.actions:
            logger.warning("replacement %s has no GitHub Actions steps", self.replacement.name)
            return document
        doc = copy.deepcopy(document)
        for job_id, _ in jobs:
            removed = _delete_matches(doc["jobs"][job_id]["steps"], self.is_target)
            if removed:
                logger.debug("job %s: removed %d step(s)", job_id, removed)
        if not present:
            seq = doc["jobs"][first[0]]["steps"]
            for offset, step in enumerate(self.replacement.copy_actions()):
                seq.insert(first[1] + offset, step)
        envs = [doc.get("env")] + [job.get("env") for job in doc["jobs"].values() if isinstance(job, dict)]
        for env in envs:
            if isinstance(env, dict):
                variables_mod.drop_legacy(env, self.legacy_prefixes)
        return doc


def _is_workflow(document: dict) -> bool:
    return isinstance(document.get("jobs"), dict)


def _workflow_steps(document: dict) -> List[Tuple[Any, List[Any]]]:
    return [
        (job_id, job["steps"])
        for job_id, job in document["jobs"].items()
        if isinstance(job, dict) and isinstance(job.get("steps"), list)
    ]


def _legacy_stage(name: str, display_name: str, steps: List[Any]) -> dict:
    return {
        "stage": name,
        "displayName": display_name,
        "jobs": [
            {
                "job": name,
                "displayName": display_name,
                "steps": list(steps),
            }
        ],
    }


def rewrite(
    document: Any,
    target: Matcher,
    replacement: Replacement,
    legacy_prefixes: Iterable[str] = variables_mod.DEFAULT_LEGACY_PREFIXES,
    legacy_names: Tuple[str, str] = (LEGACY_PRE, LEGACY_POST),
) -> Any:
    """Functional form of :meth:`PipelineRewriter.rewrite`."""
    rewriter = PipelineRewriter(replacement, target, legacy_prefixes, legacy_names)
    return rewriter.rewrite(document)
