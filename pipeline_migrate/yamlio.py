"""ruamel.yaml round-trip helpers.

Pipelines are loaded with the round-trip loader so that comments, key order
and quoting survive a rewrite.  Long scalars are never folded.
"""
from __future__ import annotations

from io import StringIO
from typing import Any

from ruamel.yaml import YAML


def make_yaml() -> YAML:
    yaml = YAML(typ="rt")
    yaml.preserve_quotes = True
    yaml.width = 4096  # avoid folding
    return yaml


def load_text(text: str) -> Any:
    return make_yaml().load(text)


def dump_text(doc: Any) -> str:
    sio = StringIO()
    make_yaml().dump(doc, sio)
    return sio.getvalue()
