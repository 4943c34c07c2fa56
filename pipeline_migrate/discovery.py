"""Candidate pipeline file discovery."""
from __future__ import annotations

import fnmatch
import os
from pathlib import Path
from typing import Iterable, List

YAML_NAME_PATTERNS = (
    "azure-pipelines.yml",
    "azure-pipelines.yaml",
    "*pipeline*.yml",
    "*pipeline*.yaml",
)

# Any YAML file below one of these directories, at any depth
YAML_DIRS = (".azuredevops", ".pipelines", ".github/workflows")

JENKINS_NAME_PATTERNS = ("Jenkinsfile", "*.Jenkinsfile", "Jenkinsfile.*")

SKIP_DIRS = {".git", "node_modules", ".venv", "__pycache__"}

BACKUP_SUFFIXES = (".bak", ".orig")

# Marks a converted copy written next to its source
OUTPUT_MARK = ".blackducksca"


def is_jenkinsfile(path: Path) -> bool:
    return any(fnmatch.fnmatch(path.name, pat) for pat in JENKINS_NAME_PATTERNS) and not path.name.endswith(BACKUP_SUFFIXES + (OUTPUT_MARK,))


def is_pipeline_yaml(path: Path, root: Path) -> bool:
    if path.suffix.lower() not in (".yml", ".yaml"):
        return False
    if path.stem.endswith(OUTPUT_MARK):
        return False
    if any(fnmatch.fnmatch(path.name, pat) for pat in YAML_NAME_PATTERNS):
        return True
    rel = "/" + path.parent.relative_to(root).as_posix() + "/"
    return any("/" + d + "/" in rel for d in YAML_DIRS)


def find_pipeline_files(root: Path) -> List[Path]:
    """Return pipeline definition files under *root*, sorted by path."""
    found: List[Path] = []
    for dirpath, dirnames, filenames in os.walk(root):
        dirnames[:] = [d for d in dirnames if d not in SKIP_DIRS]
        for name in filenames:
            path = Path(dirpath) / name
            if is_jenkinsfile(path) or is_pipeline_yaml(path, root):
                found.append(path)
    return sorted(found)


def expand_paths(paths: Iterable[str], root: str | None = None) -> List[Path]:
    """Explicit files are taken as given; directories are searched."""
    result: List[Path] = []
    if root:
        result.extend(find_pipeline_files(Path(root)))
    for raw in paths:
        path = Path(raw)
        if path.is_dir():
            result.extend(find_pipeline_files(path))
        else:
            result.append(path)
    seen = set()
    unique: List[Path] = []
    for path in result:
        if path not in seen:
            seen.add(path)
            unique.append(path)
    return unique
