"""In-place conversion of ``SynopsysPolaris`` task steps.

Where :mod:`pipeline_migrate.rewriter` swaps whole stages, this mode keeps
the pipeline layout and converts each Polaris task step, wherever it sits,
into a ``BlackDuckSecurityScan@2`` step configured for Black Duck SCA.
Typical Azure DevOps shapes are handled alike::

    steps: [...]
    jobs: [{steps: [...]}]
    stages: [{jobs: [{steps: [...]}]}]

GitHub Actions workflows get the same treatment: a
``synopsys-sig/synopsys-action`` step becomes a
``blackduck-inc/black-duck-security-scan`` step.

The service connection used by the old task has no equivalent in the new one;
its name is kept in the step environment so a reviewer can find it.
"""
from __future__ import annotations

import copy
from typing import Any, Dict, Tuple

from .errors import MalformedDocument

POLARIS_TASK_NAMES = {"SynopsysPolaris@1", "SynopsysPolaris@0", "SynopsysPolaris"}

BLACKDUCK_TASK = "BlackDuckSecurityScan@2"

DEFAULT_BLACKDUCKSCA_INPUTS = {
    "BLACKDUCKSCA_URL": "$(BLACKDUCK_URL)",
    "BLACKDUCKSCA_TOKEN": "$(BLACKDUCK_TOKEN)",
}

DEFAULT_ENV = {
    "DETECT_PROJECT_NAME": "$(Build.Repository.Name)",
}

PRESERVED_KEYS = ("displayName", "condition", "continueOnError", "enabled", "timeoutInMinutes")

MIGRATED_SERVICE_ENV = "_MIGRATED_FROM_POLARIS_SERVICE_CONNECTION"

POLARIS_ACTION = "synopsys-sig/synopsys-action"

BLACKDUCK_ACTION = "blackduck-inc/black-duck-security-scan@v2"

DEFAULT_ACTION_WITH = {
    "blackducksca_url": "${{ vars.BLACKDUCK_URL }}",
    "blackducksca_token": "${{ secrets.BLACKDUCK_TOKEN }}",
}

ACTION_PRESERVED_KEYS = ("name", "id", "if", "continue-on-error", "timeout-minutes", "env")


def is_polaris_step(step: Any) -> bool:
    return isinstance(step, dict) and step.get("task") in POLARIS_TASK_NAMES


def is_polaris_action(step: Any) -> bool:
    uses = step.get("uses") if isinstance(step, dict) else None
    return isinstance(uses, str) and uses.split("@", 1)[0].strip().lower() == POLARIS_ACTION


def convert_step(step: Dict[str, Any]) -> Dict[str, Any]:
    new_step: Dict[str, Any] = {}
    for key in PRESERVED_KEYS:
        if key in step:
            new_step[key] = step[key]
    if "displayName" not in new_step:
        new_step["displayName"] = "Black Duck SCA Scan"

    new_step["task"] = BLACKDUCK_TASK
    new_step["inputs"] = copy.deepcopy(DEFAULT_BLACKDUCKSCA_INPUTS)
    new_step["env"] = copy.deepcopy(DEFAULT_ENV)

    old_inputs = step.get("inputs") or {}
    if isinstance(old_inputs, dict) and "polarisService" in old_inputs:
        new_step["env"][MIGRATED_SERVICE_ENV] = str(old_inputs["polarisService"])
    return new_step


def convert_action(step: Dict[str, Any]) -> Dict[str, Any]:
    new_step: Dict[str, Any] = {}
    for key in ACTION_PRESERVED_KEYS:
        if key in step:
            new_step[key] = step[key]
    new_step.setdefault("name", "Black Duck SCA scan")
    new_step["uses"] = BLACKDUCK_ACTION
    new_step["with"] = copy.deepcopy(DEFAULT_ACTION_WITH)
    return new_step


def _convertible(step: Any) -> bool:
    return is_polaris_step(step) or is_polaris_action(step)


def _convert(step: Dict[str, Any]) -> Dict[str, Any]:
    if is_polaris_action(step):
        return convert_action(step)
    return convert_step(step)


def _walk(node: Any) -> int:
    converted = 0
    if isinstance(node, dict):
        for key, value in node.items():
            if key == "steps" and isinstance(value, list):
                for idx, step in enumerate(value):
                    if _convertible(step):
                        value[idx] = _convert(step)
                        converted += 1
                    else:
                        converted += _walk(step)
            else:
                converted += _walk(value)
    elif isinstance(node, list):
        for item in node:
            converted += _walk(item)
    return converted


def convert_steps(document: Any) -> Tuple[Any, int]:
    """Return ``(document', converted_count)``; *document* is left untouched."""
    if not isinstance(document, dict):
        raise MalformedDocument(
            f"pipeline root must be a mapping, got {type(document).__name__}"
        )
    if not _count(document):
        return document, 0
    doc = copy.deepcopy(document)
    return doc, _walk(doc)


def _count(node: Any) -> int:
    if isinstance(node, dict):
        total = 0
        for key, value in node.items():
            if key == "steps" and isinstance(value, list):
                total += sum(1 if _convertible(st) else _count(st) for st in value)
            else:
                total += _count(value)
        return total
    if isinstance(node, list):
        return sum(_count(item) for item in node)
    return 0
