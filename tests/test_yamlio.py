"""ruamel.yaml round-trip behaviour relied on by the rewrite."""

import pytest
from ruamel.yaml import YAMLError

from pipeline_migrate.yamlio import dump_text, load_text


def test_round_trip_preserves_comments_and_quotes():
    source = "# header\nvariables:\n  A: '1'  # inline\n  B: \"two\"\n"
    assert dump_text(load_text(source)) == source


def test_long_scripts_are_not_folded():
    script = "echo " + "x" * 300
    source = f"steps:\n- script: {script}\n"
    assert dump_text(load_text(source)) == source


def test_invalid_yaml_raises_error():
    with pytest.raises(YAMLError):
        load_text("key: value:")


def test_duplicate_keys_are_rejected():
    with pytest.raises(YAMLError):
        load_text("a: 1\na: 2\n")
