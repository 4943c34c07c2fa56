import pytest

from pipeline_migrate.replacements import Replacement, from_data
from pipeline_migrate.rewriter import PipelineRewriter
from tests.helpers import stage


@pytest.fixture(autouse=True)
def isolated_cwd(tmp_path_factory, monkeypatch):
    """
    Per-test isolation:
    - chdir into a unique tmp dir so a stray .migrate/config.yml is never read
    - drop git credentials inherited from the CI environment
    """
    tmp_path = tmp_path_factory.mktemp("cwd")
    monkeypatch.chdir(tmp_path)
    for var in ("GIT_TOKEN", "SYSTEM_ACCESSTOKEN", "GIT_DIR", "GIT_WORK_TREE"):
        monkeypatch.delenv(var, raising=False)
    yield


@pytest.fixture
def replacement() -> Replacement:
    """A one-stage replacement with a mapping of variables."""
    return from_data(
        {
            "stages": [
                stage(
                    "X",
                    {"task": "BlackDuckSecurityScan@2", "inputs": {"BLACKDUCKSCA_URL": "$(BLACKDUCK_URL)"}},
                )
            ],
            "variables": {"BLACKDUCK_URL": "https://bd.example.com"},
        },
        name="test",
    )


@pytest.fixture
def rewriter(replacement) -> PipelineRewriter:
    return PipelineRewriter(replacement)


AZURE_STAGES = """\
# CI for the service
trigger:
- main

variables:
  COVERITY_HOME: /opt/cov
  OTHER: "1"

stages:
- stage: Build
  displayName: Build
  jobs:
  - job: build
    steps:
    - script: make build  # compile
- stage: Polaris
  displayName: Static analysis
  jobs:
  - job: polaris
    steps:
    - task: SynopsysPolaris@1
      inputs:
        polarisService: 'polaris-conn'
        polarisCommand: 'analyze -w'
- stage: Deploy
  jobs:
  - job: deploy
    steps:
    - script: ./deploy.sh
"""


@pytest.fixture
def azure_stages_text() -> str:
    return AZURE_STAGES
