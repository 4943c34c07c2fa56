"""Small builders for pipeline fragments used across tests."""


def polaris_step(name: str = "Polaris") -> dict:
    return {
        "task": "SynopsysPolaris@1",
        "displayName": name,
        "inputs": {"polarisService": "polaris-conn", "polarisCommand": "analyze -w"},
    }


def script_step(text: str) -> dict:
    return {"script": text, "displayName": text}


def stage(name: str, *steps: dict) -> dict:
    return {
        "stage": name,
        "displayName": name,
        "jobs": [{"job": name.lower(), "steps": list(steps)}],
    }
