"""Command-line interface for the pipeline migration tool.

Subcommands:

  - ``scan``: report which pipeline files would change (no writes).
  - ``migrate``: rewrite the files, keep ``.bak`` copies, and optionally
    commit and push the result.  ``--out`` (one input file) or
    ``--side-by-side`` write the result to a new file instead.

Exit status is 0 on success (including when nothing matched), 1 when a file
could not be migrated or the git step failed, and 2 on usage errors.
"""
from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Any, Dict, List

from ruamel.yaml import YAMLError

from . import git as git_ops
from .batch import BatchResult, Migrator
from .config import load_config
from .discovery import expand_paths
from .errors import GitError, MigrationError
from .matching import DEFAULT_MARKER_PATTERNS, DEFAULT_TARGET_PATTERNS, Matcher, as_patterns
from .replacements import PRESETS, Replacement, load_replacement, preset
from .rewriter import PipelineRewriter


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="pipeline-migrate",
        description="Replace Polaris scan stages with Black Duck in CI pipelines",
        allow_abbrev=False,
    )
    parser.add_argument("--config", default=None, help="Path to config (default .migrate/config.yml)")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    def add_common(p: argparse.ArgumentParser) -> None:
        p.add_argument("paths", nargs="*", help="Pipeline files or directories")
        p.add_argument("--root", default=None, help="Search this directory for pipeline files")
        p.add_argument("--mode", choices=["stage", "step"], default=None)
        src = p.add_mutually_exclusive_group()
        src.add_argument("--preset", choices=sorted(PRESETS), default=None)
        src.add_argument("--replacement", default=None, help="YAML file with replacement stages")

    scan = sub.add_parser("scan", help="Report files that would be migrated")
    add_common(scan)

    mig = sub.add_parser("migrate", help="Migrate pipeline files in place")
    add_common(mig)
    mig.add_argument("--dry-run", action="store_true", help="Report matches without writing")
    mig.add_argument("--no-backup", action="store_true", help="Do not keep a backup copy")
    dest = mig.add_mutually_exclusive_group()
    dest.add_argument("--out", default=None, help="Write the result here (single input file only)")
    dest.add_argument(
        "--side-by-side",
        action="store_true",
        help="Write <name>.blackducksca.yml next to each input instead of overwriting",
    )
    mig.add_argument("--commit", action="store_true", help="Commit updated files")
    mig.add_argument("--push", action="store_true", help="Push after committing (implies --commit)")
    mig.add_argument("--branch", default=None)
    mig.add_argument("--remote", default=None)
    mig.add_argument("--message", default=None, help="Commit message")
    return parser


def _replacement(args: argparse.Namespace, cfg: Dict[str, Any]) -> Replacement:
    markers = as_patterns(cfg.get("marker_patterns"), DEFAULT_MARKER_PATTERNS)
    replacement_file = args.replacement or (None if args.preset else cfg.get("replacement_file"))
    if replacement_file:
        return load_replacement(Path(replacement_file), markers)
    return preset(args.preset or cfg.get("preset") or "blackduck-sca", markers)


def _rewriter(args: argparse.Namespace, cfg: Dict[str, Any]) -> PipelineRewriter:
    names = cfg.get("legacy_stage_names") or {}
    return PipelineRewriter(
        _replacement(args, cfg),
        target=Matcher(as_patterns(cfg.get("target_patterns"), DEFAULT_TARGET_PATTERNS)),
        legacy_prefixes=cfg.get("legacy_variable_prefixes") or (),
        legacy_names=(names.get("pre", "LegacyPre"), names.get("post", "LegacyPost")),
    )


def _report(result: BatchResult) -> None:
    for outcome in result.outcomes:
        if outcome.status == "skipped":
            continue
        line = f"{outcome.status}: {outcome.path}"
        if outcome.output and outcome.output != outcome.path:
            line += f" -> {outcome.output}"
        if outcome.detail:
            line += f" ({outcome.detail})"
        print(line)
    print(result.summary())


def _commit_and_push(args: argparse.Namespace, cfg: Dict[str, Any], result: BatchResult) -> int:
    git_cfg = cfg.get("git") or {}
    paths = result.updated_paths
    if not paths:
        print("Nothing to commit.")
        return 0
    try:
        repo = git_ops.repo_root(paths[0])
        committed = git_ops.commit(
            repo,
            paths,
            args.message or git_cfg.get("message") or "Replace Polaris scan with Black Duck",
            author_name=git_cfg.get("author_name"),
            author_email=git_cfg.get("author_email"),
        )
        if committed and args.push:
            token_env = git_cfg.get("token_env") or git_ops.DEFAULT_TOKEN_ENV
            if isinstance(token_env, str):
                token_env = [token_env]
            git_ops.push(
                repo,
                remote=args.remote or git_cfg.get("remote") or "origin",
                branch=args.branch or git_cfg.get("branch"),
                token=git_ops.find_token(token_env),
            )
    except GitError as exc:
        print(f"[pipeline-migrate] Error: {exc}", file=sys.stderr)
        return 1
    return 0


def main(argv: List[str] | None = None) -> int:
    """Entry point for the CLI."""
    parser = _build_parser()
    args = parser.parse_args(sys.argv[1:] if argv is None else argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
    )
    cfg = load_config(args.config)

    files = expand_paths(args.paths, args.root)
    if not files:
        if not args.paths and not args.root:
            parser.error("no pipeline files or --root given")
        print("No pipeline files found.")
        return 0
    out = getattr(args, "out", None)
    if out and len(files) != 1:
        parser.error("--out needs exactly one input file")

    try:
        rewriter = _rewriter(args, cfg)
    except (MigrationError, YAMLError, OSError, KeyError) as exc:
        print(f"[pipeline-migrate] Error: replacement: {exc}", file=sys.stderr)
        return 1

    dry_run = args.command == "scan" or getattr(args, "dry_run", False)
    backup_suffix = None if getattr(args, "no_backup", False) else cfg.get("backup_suffix")
    migrator = Migrator(
        rewriter,
        mode=args.mode or cfg.get("mode") or "stage",
        dry_run=dry_run,
        backup_suffix=backup_suffix,
        in_place=not getattr(args, "side_by_side", False),
        output=Path(out) if out else None,
    )
    result = migrator.run(files)
    _report(result)

    code = 1 if result.failed else 0
    if not dry_run and (getattr(args, "commit", False) or getattr(args, "push", False)):
        code = max(code, _commit_and_push(args, cfg, result))
    return code


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
