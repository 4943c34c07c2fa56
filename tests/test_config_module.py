import json
import logging

from pipeline_migrate import config


def test_load_config_returns_defaults_when_missing(tmp_path):
    result = config.load_config(str(tmp_path / "config.yml"))

    assert result["mode"] == "stage"
    assert result["backup_suffix"] == ".bak"
    assert result["git"]["remote"] == "origin"
    assert "COVERITY_" in result["legacy_variable_prefixes"]


def test_load_config_reads_default_location(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    (tmp_path / ".migrate").mkdir()
    (tmp_path / ".migrate" / "config.yml").write_text("preset: coverity-on-polaris\n", encoding="utf-8")

    assert config.load_config()["preset"] == "coverity-on-polaris"


def test_load_config_merges_json_overrides(tmp_path):
    overrides = {
        "mode": "step",
        "git": {"branch": "bd-migration"},
        "legacy_variable_prefixes": ["COV_"],
    }
    cfg = tmp_path / "config.json"
    cfg.write_text(json.dumps(overrides), encoding="utf-8")

    result = config.load_config(str(cfg))

    assert result["mode"] == "step"
    assert result["git"]["branch"] == "bd-migration"
    assert result["git"]["remote"] == "origin"  # default preserved
    assert result["legacy_variable_prefixes"] == ["COV_"]


def test_load_config_yaml_overrides(tmp_path):
    cfg = tmp_path / "config.yml"
    cfg.write_text(
        "target_patterns:\n- 'polaris-wrapper\\.sh'\nlegacy_stage_names:\n  post: Rest\n",
        encoding="utf-8",
    )

    result = config.load_config(str(cfg))

    assert result["target_patterns"] == ["polaris-wrapper\\.sh"]
    assert result["legacy_stage_names"] == {"pre": "LegacyPre", "post": "Rest"}


def test_invalid_config_falls_back_to_defaults(tmp_path, caplog):
    cfg = tmp_path / "config.yml"
    cfg.write_text("mode: [unclosed\n", encoding="utf-8")
    caplog.set_level(logging.WARNING)

    result = config.load_config(str(cfg))

    assert result == config.DEFAULTS
    assert "Ignoring unreadable config" in caplog.text


def test_defaults_are_not_shared(tmp_path):
    first = config.load_config(str(tmp_path / "missing.yml"))
    first["git"]["remote"] = "upstream"
    assert config.load_config(str(tmp_path / "missing.yml"))["git"]["remote"] == "origin"
