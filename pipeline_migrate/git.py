"""git commit/push for migrated files.

Credentials are read from the environment and handed to git as an
``http.extraheader`` on the command line of the push only, so they never end
up in ``.git/config``.  The header value is never logged.
"""
from __future__ import annotations

import base64
import logging
import os
import subprocess
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence

from .errors import GitError

logger = logging.getLogger(__name__)

DEFAULT_TOKEN_ENV = ("GIT_TOKEN", "SYSTEM_ACCESSTOKEN")


def _git_env() -> Dict[str, str]:
    env = dict(os.environ)
    env.pop("GIT_DIR", None)
    env.pop("GIT_WORK_TREE", None)
    return env


def find_token(names: Sequence[str] = DEFAULT_TOKEN_ENV) -> Optional[str]:
    for name in names:
        value = os.environ.get(name)
        if value:
            return value
    return None


def auth_header(token: str) -> str:
    # Azure DevOps and GitHub both accept a PAT as the basic auth password
    raw = base64.b64encode(f":{token}".encode("utf-8")).decode("ascii")
    return f"AUTHORIZATION: basic {raw}"


def _run(args: List[str], cwd: Path, redact: int = 0) -> subprocess.CompletedProcess:
    shown = args[redact:] if redact else args
    logger.debug("git %s", " ".join(shown))
    try:
        return subprocess.run(
            ["git", *args],
            cwd=str(cwd),
            check=True,
            capture_output=True,
            text=True,
            env=_git_env(),
        )
    except subprocess.CalledProcessError as exc:
        stderr = (exc.stderr or "").strip()
        raise GitError(f"git {' '.join(shown)} failed: {stderr}", exc.returncode) from exc
    except OSError as exc:
        raise GitError(f"git {' '.join(shown)} failed: {exc}") from exc


def repo_root(path: Path) -> Path:
    proc = _run(["rev-parse", "--show-toplevel"], cwd=path if path.is_dir() else path.parent)
    return Path(proc.stdout.strip())


def commit(
    repo: Path,
    paths: Iterable[Path],
    message: str,
    author_name: Optional[str] = None,
    author_email: Optional[str] = None,
) -> bool:
    """Stage *paths* and commit only them. Returns False when they have no changes.

    Anything else already in the index stays staged and out of the commit.
    """
    files = [str(Path(p).resolve()) for p in paths]
    if not files:
        return False
    _run(["add", "--", *files], cwd=repo)
    staged = subprocess.run(
        ["git", "diff", "--cached", "--quiet", "--", *files],
        cwd=str(repo),
        env=_git_env(),
    )
    if staged.returncode == 0:
        logger.info("nothing staged; skipping commit")
        return False
    identity: List[str] = []
    if author_name:
        identity += ["-c", f"user.name={author_name}"]
    if author_email:
        identity += ["-c", f"user.email={author_email}"]
    _run([*identity, "commit", "-m", message, "--", *files], cwd=repo)
    logger.info("committed %d file(s)", len(files))
    return True


def push(repo: Path, remote: str = "origin", branch: Optional[str] = None, token: Optional[str] = None) -> None:
    refspec = f"HEAD:{branch}" if branch else "HEAD"
    args = ["push", remote, refspec]
    if token:
        _run(["-c", f"http.extraheader={auth_header(token)}", *args], cwd=repo, redact=2)
    else:
        _run(args, cwd=repo)
    logger.info("pushed %s to %s", refspec, remote)
