"""Per-file migration and best-effort batches.

Each file is read, transformed entirely in memory and only then written
back, next to a backup copy of the original.  Instead of overwriting, the
result can go to an explicit output file (single input only) or to a
``<name>.blackducksca.yml`` copy beside each input.  A failure in one file is
recorded in its :class:`FileOutcome` and never stops the rest of the batch.
"""
from __future__ import annotations

import logging
import shutil
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Tuple

from ruamel.yaml import YAMLError

from .convert import convert_steps
from .discovery import OUTPUT_MARK, is_jenkinsfile
from .errors import MigrationError
from .jenkinsfile import rewrite_jenkinsfile
from .rewriter import PipelineRewriter
from .yamlio import dump_text, load_text

logger = logging.getLogger(__name__)

UPDATED = "updated"
MATCHED = "matched"  # dry run: would be updated
SKIPPED = "skipped"
FAILED = "failed"

STATUSES = (MATCHED, UPDATED, SKIPPED, FAILED)


@dataclass
class FileOutcome:
    path: Path
    status: str
    detail: str = ""
    backup: Optional[Path] = None
    output: Optional[Path] = None


@dataclass
class BatchResult:
    outcomes: List[FileOutcome] = field(default_factory=list)

    def counts(self) -> Dict[str, int]:
        counts = {status: 0 for status in STATUSES}
        for outcome in self.outcomes:
            counts[outcome.status] += 1
        return counts

    @property
    def failed(self) -> List[FileOutcome]:
        return [o for o in self.outcomes if o.status == FAILED]

    @property
    def updated_paths(self) -> List[Path]:
        return [o.output or o.path for o in self.outcomes if o.status == UPDATED]

    def summary(self) -> str:
        counts = self.counts()
        return " ".join(f"{status.capitalize()}: {counts[status]}" for status in STATUSES)


def sibling_output(path: Path) -> Path:
    """``build.yml`` -> ``build.blackducksca.yml``; other files get the mark appended."""
    if path.suffix.lower() in (".yml", ".yaml"):
        return path.with_name(path.stem + OUTPUT_MARK + path.suffix)
    return path.with_name(path.name + OUTPUT_MARK)


class Migrator:
    """Apply a :class:`PipelineRewriter` (or step conversion) to files."""

    def __init__(
        self,
        rewriter: PipelineRewriter,
        mode: str = "stage",
        dry_run: bool = False,
        backup_suffix: Optional[str] = ".bak",
        in_place: bool = True,
        output: Optional[Path] = None,
    ) -> None:
        if mode not in ("stage", "step"):
            raise ValueError(f"unknown mode {mode!r}")
        self.rewriter = rewriter
        self.mode = mode
        self.dry_run = dry_run
        self.backup_suffix = backup_suffix
        self.in_place = in_place
        self.output = Path(output) if output else None

    def destination(self, path: Path) -> Path:
        if self.output is not None:
            return self.output
        if self.in_place:
            return path
        return sibling_output(path)

    def transform_text(self, path: Path, text: str) -> Tuple[str, str]:
        """Return the migrated text of *path* and a short description of the change.

        The text equals *text* when nothing applies.
        """
        if is_jenkinsfile(path):
            jenkins = self.rewriter.replacement.jenkins
            if not jenkins:
                logger.debug("%s: replacement %s has no Jenkins stage", path, self.rewriter.replacement.name)
                return text, ""
            new_text = rewrite_jenkinsfile(
                text,
                self.rewriter.target,
                self.rewriter.replacement.markers,
                jenkins,
            )
            return new_text, ""
        doc = load_text(text)
        if self.mode == "step":
            new_doc, converted = convert_steps(doc)
            detail = f"{converted} step(s) converted"
        else:
            removed = self.rewriter.count_targets(doc)
            new_doc = self.rewriter.rewrite(doc)
            detail = f"{removed} Polaris item(s) replaced"
        if new_doc is doc:
            return text, ""
        return dump_text(new_doc), detail

    def process(self, path: Path) -> FileOutcome:
        try:
            orig = path.read_text(encoding="utf-8")
            new, detail = self.transform_text(path, orig)
        except (MigrationError, YAMLError, OSError, UnicodeDecodeError) as exc:
            logger.error("%s: %s", path, exc)
            return FileOutcome(path, FAILED, str(exc))
        if new == orig:
            logger.debug("%s: nothing to migrate", path)
            return FileOutcome(path, SKIPPED)
        if self.dry_run:
            logger.debug("%s: would update (%s)", path, detail)
            return FileOutcome(path, MATCHED, detail)
        dest = self.destination(path)
        backup = None
        try:
            if self.backup_suffix and dest == path:
                backup = path.with_name(path.name + self.backup_suffix)
                shutil.copy2(path, backup)
            dest.write_text(new, encoding="utf-8", newline="\n")
        except OSError as exc:
            logger.error("%s: write failed: %s", dest, exc)
            return FileOutcome(path, FAILED, f"write failed: {exc}", backup)
        logger.debug("%s: updated (%s)", dest, detail)
        return FileOutcome(path, UPDATED, detail, backup, dest)

    def run(self, paths: Iterable[Path]) -> BatchResult:
        paths = list(paths)
        if self.output is not None and len(paths) != 1:
            raise ValueError("an explicit output path needs exactly one input file")
        result = BatchResult()
        for path in paths:
            result.outcomes.append(self.process(Path(path)))
        return result
