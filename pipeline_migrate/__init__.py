"""Polaris to Black Duck pipeline migration.

This package rewrites CI pipeline definitions (Azure DevOps YAML, GitHub
Actions YAML and declarative Jenkinsfiles) so that a Polaris static-analysis
stage or step is replaced by a Black Duck stage or step.  The rewrite itself
is a pure in-memory transform; file handling, backups and the optional git
commit/push live in :mod:`pipeline_migrate.batch` and
:mod:`pipeline_migrate.git`.
"""

__all__ = ["cli", "rewriter"]
__version__ = "0.1.0"
