"""Replacement fragments spliced into migrated pipelines.

Two presets ship with the tool:

``blackduck-sca``
    A single ``BlackDuckSCA`` stage running ``BlackDuckSecurityScan@2``
    against a Black Duck SCA server.  This is the default.

``coverity-on-polaris``
    The ``BlackduckCoverityOnPolaris`` stage that keeps a Polaris scan and
    adds ``BlackduckCoverityOnPolaris@2`` next to it.

A custom replacement can be supplied as a YAML file holding either a plain
sequence of stages or a mapping with ``stages``, ``variables``,
``markers``, ``jenkins`` and ``actions`` keys.
"""
from __future__ import annotations

import copy
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

from .errors import MalformedDocument
from .matching import DEFAULT_MARKER_PATTERNS, Matcher, as_patterns
from .yamlio import load_text

_BLACKDUCK_SCA_STAGES = """\
- stage: BlackDuckSCA
  displayName: Black Duck SCA
  jobs:
  - job: blackduck_sca_scan
    displayName: Black Duck SCA scan
    steps:
    - task: BlackDuckSecurityScan@2
      displayName: Black Duck SCA Scan
      inputs:
        BLACKDUCKSCA_URL: $(BLACKDUCK_URL)
        BLACKDUCKSCA_TOKEN: $(BLACKDUCK_TOKEN)
      env:
        DETECT_PROJECT_NAME: $(Build.Repository.Name)
"""

_COVERITY_ON_POLARIS_STAGES = """\
- stage: BlackduckCoverityOnPolaris
  displayName: Blackduck + Coverity on Polaris
  jobs:
  - job: polaris_scan
    displayName: Polaris scan
    steps:
    - task: SynopsysPolaris@1
      inputs:
        polarisService: 'test01'
        polarisCommand: 'polaris'
        waitForIssues: true
        populateChangeSetFile: true

    - task: BlackduckCoverityOnPolaris@2
      inputs:
        polarisService: 'test1'
        polarisCommand: 'polaris'
        waitForIssues: true
        populateChangeSetFile: true
"""

_BLACKDUCK_SCA_ACTIONS = """\
- name: Black Duck SCA scan
  uses: blackduck-inc/black-duck-security-scan@v2
  with:
    blackducksca_url: ${{ vars.BLACKDUCK_URL }}
    blackducksca_token: ${{ secrets.BLACKDUCK_TOKEN }}
"""

_COVERITY_ON_POLARIS_ACTIONS = """\
- name: Black Duck Coverity on Polaris scan
  uses: blackduck-inc/black-duck-security-scan@v2
  with:
    polaris_server_url: ${{ vars.POLARIS_SERVER_URL }}
    polaris_access_token: ${{ secrets.POLARIS_ACCESS_TOKEN }}
    polaris_assessment_types: "SAST,SCA"
"""

_BLACKDUCK_SCA_JENKINS = """\
stage('Black Duck SCA') {
    steps {
        security_scan product: 'blackducksca',
            blackducksca_url: env.BLACKDUCK_URL,
            blackducksca_token: env.BLACKDUCK_TOKEN
    }
}
"""

_COVERITY_ON_POLARIS_JENKINS = """\
stage('Blackduck Coverity on Polaris') {
    steps {
        security_scan product: 'polaris',
            polaris_server_url: env.POLARIS_SERVER_URL,
            polaris_access_token: env.POLARIS_ACCESS_TOKEN,
            polaris_assessment_types: 'SAST,SCA'
    }
}
"""


@dataclass
class Replacement:
    """Content inserted in place of the removed Polaris material."""

    name: str
    stages: List[Any]
    variables: Any = None
    markers: Matcher = field(default_factory=lambda: Matcher(DEFAULT_MARKER_PATTERNS))
    jenkins: Optional[str] = None
    # GitHub Actions steps used in place of a Polaris workflow step
    actions: Optional[List[Any]] = None

    def copy_stages(self) -> List[Any]:
        return [copy.deepcopy(st) for st in self.stages]

    def copy_actions(self) -> List[Any]:
        return [copy.deepcopy(st) for st in self.actions or []]


PRESETS: Dict[str, Dict[str, Any]] = {
    "blackduck-sca": {
        "stages": _BLACKDUCK_SCA_STAGES,
        # BLACKDUCK_TOKEN is a secret and has to come from a variable group
        "variables": {"BLACKDUCK_URL": "https://blackduck.example.com"},
        "jenkins": _BLACKDUCK_SCA_JENKINS,
        "actions": _BLACKDUCK_SCA_ACTIONS,
    },
    "coverity-on-polaris": {
        "stages": _COVERITY_ON_POLARIS_STAGES,
        "variables": None,
        "jenkins": _COVERITY_ON_POLARIS_JENKINS,
        "actions": _COVERITY_ON_POLARIS_ACTIONS,
    },
}

DEFAULT_PRESET = "blackduck-sca"


def preset(name: str = DEFAULT_PRESET, marker_patterns: Optional[List[str]] = None) -> Replacement:
    try:
        spec = PRESETS[name]
    except KeyError as exc:
        raise KeyError(f"Unknown replacement preset {name!r}") from exc
    return Replacement(
        name=name,
        stages=list(load_text(spec["stages"])),
        variables=copy.deepcopy(spec["variables"]),
        markers=Matcher(as_patterns(marker_patterns, DEFAULT_MARKER_PATTERNS)),
        jenkins=spec["jenkins"],
        actions=list(load_text(spec["actions"])),
    )


def from_data(data: Any, name: str = "custom", marker_patterns: Optional[List[str]] = None) -> Replacement:
    """Build a :class:`Replacement` from parsed YAML."""
    variables = None
    jenkins = None
    actions = None
    if isinstance(data, dict):
        stages = data.get("stages")
        variables = data.get("variables")
        jenkins = data.get("jenkins")
        actions = data.get("actions")
        if data.get("markers") is not None:
            marker_patterns = as_patterns(data["markers"], DEFAULT_MARKER_PATTERNS)
    else:
        stages = data
    if not isinstance(stages, list):
        raise MalformedDocument(f"replacement {name!r}: stages must be a sequence")
    if variables is not None and not isinstance(variables, (dict, list)):
        raise MalformedDocument(f"replacement {name!r}: variables must be a mapping or a sequence")
    if isinstance(actions, dict):
        actions = [actions]
    if actions is not None and not isinstance(actions, list):
        raise MalformedDocument(f"replacement {name!r}: actions must be a step or a sequence of steps")
    return Replacement(
        name=name,
        stages=stages,
        variables=variables,
        markers=Matcher(as_patterns(marker_patterns, DEFAULT_MARKER_PATTERNS)),
        jenkins=jenkins,
        actions=actions,
    )


def load_replacement(path: Path, marker_patterns: Optional[List[str]] = None) -> Replacement:
    text = path.read_text(encoding="utf-8")
    return from_data(load_text(text), name=path.stem, marker_patterns=marker_patterns)
