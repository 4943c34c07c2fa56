import pytest

from pipeline_migrate.matching import (
    DEFAULT_MARKER_PATTERNS,
    DEFAULT_TARGET_PATTERNS,
    Matcher,
    as_patterns,
    iter_steps,
    step_evidence,
)

TARGET = Matcher(DEFAULT_TARGET_PATTERNS)
MARKERS = Matcher(DEFAULT_MARKER_PATTERNS)


@pytest.mark.parametrize(
    "step",
    [
        {"task": "SynopsysPolaris@1"},
        {"task": "synopsyspolaris@0", "displayName": "scan"},
        {"bash": "polaris -c polaris.yml analyze -w"},
        {"script": "set -e\n./tools/polaris --co project.name=x analyze"},
        {"uses": "synopsys-sig/synopsys-action@v1.6.0", "with": {"polaris_server_url": "x"}},
        {"task": "DownloadPipelineArtifact@2", "inputs": {"artifactName": "SynopsysPolaris@1-results"}},
    ],
)
def test_target_evidence_fields(step):
    assert TARGET.search(step_evidence(step))


@pytest.mark.parametrize(
    "step",
    [
        {"script": "echo polaris is a star"},
        {"displayName": "Run Polaris"},
        {"task": "Bash@3", "env": {"TOOL": "SynopsysPolaris@1"}},
        {"task": "Bash@3", "inputs": {"nested": {"task": "SynopsysPolaris@1"}}},
    ],
)
def test_fields_outside_the_evidence_set_do_not_match(step):
    assert not TARGET.search(step_evidence(step))


def test_markers_identify_black_duck_steps():
    assert MARKERS.search(step_evidence({"task": "BlackDuckSecurityScan@2"}))
    assert MARKERS.search(step_evidence({"uses": "blackduck-inc/black-duck-security-scan@v2"}))
    assert not MARKERS.search(step_evidence({"task": "SynopsysPolaris@1"}))


def test_empty_matcher_never_matches():
    assert not Matcher([]).search("anything")
    assert not TARGET.search("")


def test_iter_steps_stays_within_the_node_and_finds_deployment_steps():
    stage = {
        "stage": "Deploy",
        "jobs": [
            {"job": "a", "steps": [{"script": "one"}]},
            {
                "deployment": "b",
                "strategy": {"runOnce": {"deploy": {"steps": [{"script": "two"}]}}},
            },
        ],
    }
    assert [s["script"] for s in iter_steps(stage)] == ["one", "two"]


def test_as_patterns_normalizes_config_values():
    assert as_patterns(None, ["a"]) == ["a"]
    assert as_patterns("b", ["a"]) == ["b"]
    assert as_patterns(["c", "d"], ["a"]) == ["c", "d"]
