"""Entry point for the pipeline migration tool.

Executing ``python -m pipeline_migrate`` forwards to the CLI defined in
``pipeline_migrate.cli``.
"""
from .cli import main


if __name__ == "__main__":
    raise SystemExit(main())
