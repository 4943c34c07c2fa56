import copy

import pytest

from pipeline_migrate.convert import (
    BLACKDUCK_TASK,
    BLACKDUCK_ACTION,
    MIGRATED_SERVICE_ENV,
    convert_action,
    convert_step,
    convert_steps,
    is_polaris_action,
    is_polaris_step,
)
from pipeline_migrate.errors import MalformedDocument


def test_convert_step_keeps_common_keys_and_records_service_connection():
    step = {
        "task": "SynopsysPolaris@1",
        "displayName": "Polaris scan",
        "condition": "succeeded()",
        "continueOnError": True,
        "inputs": {"polarisService": "polaris-conn", "polarisCommand": "analyze"},
    }
    new = convert_step(step)
    assert new == {
        "displayName": "Polaris scan",
        "condition": "succeeded()",
        "continueOnError": True,
        "task": BLACKDUCK_TASK,
        "inputs": {
            "BLACKDUCKSCA_URL": "$(BLACKDUCK_URL)",
            "BLACKDUCKSCA_TOKEN": "$(BLACKDUCK_TOKEN)",
        },
        "env": {
            "DETECT_PROJECT_NAME": "$(Build.Repository.Name)",
            MIGRATED_SERVICE_ENV: "polaris-conn",
        },
    }


def test_convert_step_defaults_display_name():
    new = convert_step({"task": "SynopsysPolaris"})
    assert new["displayName"] == "Black Duck SCA Scan"
    assert MIGRATED_SERVICE_ENV not in new["env"]


def test_is_polaris_step_only_matches_known_task_names():
    assert is_polaris_step({"task": "SynopsysPolaris@0"})
    assert not is_polaris_step({"task": "SynopsysPolaris@9"})
    assert not is_polaris_step({"script": "polaris analyze"})
    assert not is_polaris_step("SynopsysPolaris@1")


def test_convert_steps_walks_stages_jobs_and_root_steps():
    doc = {
        "steps": [{"task": "SynopsysPolaris@1"}],
        "stages": [
            {"stage": "A", "jobs": [{"job": "a", "steps": [{"script": "make"}, {"task": "SynopsysPolaris@1"}]}]},
        ],
    }
    original = copy.deepcopy(doc)

    new, count = convert_steps(doc)

    assert count == 2
    assert new["steps"][0]["task"] == BLACKDUCK_TASK
    assert new["stages"][0]["jobs"][0]["steps"][0] == {"script": "make"}
    assert new["stages"][0]["jobs"][0]["steps"][1]["task"] == BLACKDUCK_TASK
    assert doc == original


def test_convert_steps_without_polaris_returns_same_document():
    doc = {"steps": [{"script": "make"}]}
    new, count = convert_steps(doc)
    assert new is doc
    assert count == 0


def test_convert_steps_is_idempotent():
    once, _ = convert_steps({"steps": [{"task": "SynopsysPolaris@1"}]})
    twice, count = convert_steps(once)
    assert count == 0
    assert twice == once


def test_convert_steps_rejects_non_mapping_root():
    with pytest.raises(MalformedDocument):
        convert_steps([{"task": "SynopsysPolaris@1"}])


def test_convert_action_keeps_step_controls():
    step = {
        "name": "Polaris",
        "if": "github.event_name == 'push'",
        "uses": "synopsys-sig/synopsys-action@v1.6.0",
        "with": {"polaris_server_url": "${{ vars.POLARIS_SERVER_URL }}"},
    }
    assert convert_action(step) == {
        "name": "Polaris",
        "if": "github.event_name == 'push'",
        "uses": BLACKDUCK_ACTION,
        "with": {
            "blackducksca_url": "${{ vars.BLACKDUCK_URL }}",
            "blackducksca_token": "${{ secrets.BLACKDUCK_TOKEN }}",
        },
    }
    assert is_polaris_action({"uses": "Synopsys-Sig/synopsys-action@main"})
    assert not is_polaris_action({"uses": "actions/checkout@v4"})


def test_convert_steps_handles_workflow_jobs():
    doc = {
        "on": "push",
        "jobs": {
            "scan": {
                "runs-on": "ubuntu-latest",
                "steps": [{"uses": "actions/checkout@v4"}, {"uses": "synopsys-sig/synopsys-action@v1.6.0"}],
            }
        },
    }

    new, count = convert_steps(doc)

    assert count == 1
    steps = new["jobs"]["scan"]["steps"]
    assert steps[0] == {"uses": "actions/checkout@v4"}
    assert steps[1]["uses"] == BLACKDUCK_ACTION
    assert steps[1]["name"] == "Black Duck SCA scan"
