"""Pull the pieces needed for a test run out of a submission's API snippet."""

import re

from submission_review.utils.exceptions import HarnessError

_PARAMETERS_RE = re.compile(r"parameters\s*:\s*\{([^}]+)\}")
_PARAM_PAIR_RE = re.compile(r"[\"']?(\w+)[\"']?\s*:\s*([^,}]+)")
_AUTH_RE = re.compile(r"Authorization:\s*Bearer\s+([^\s\\\"']+)")
_WORKFLOW_URL_RE = re.compile(r"/v1/(?:workflow|workflows)/(\w+)/run")
_WORKFLOW_ID_RE = re.compile(r"[\"']?workflow_id[\"']?\s*:\s*[\"']?(\d+)")

# Injected by the harness itself, never taken from the snippet
RESERVED_PARAMS = {"api_token"}


def extract_parameters(api_code: str) -> dict[str, str]:
    """Return ``key -> default value`` for the snippet's ``parameters`` block.

    Quotes are stripped from values. Returns an empty dict when the snippet
    has no parameters block.
    """
    m = _PARAMETERS_RE.search(api_code)
    if not m:
        return {}

    params: dict[str, str] = {}
    for key, value in _PARAM_PAIR_RE.findall(m.group(1)):
        if key in RESERVED_PARAMS:
            continue
        params[key] = value.strip().replace('"', "").replace("'", "")
    return params


def extract_auth_token(api_code: str) -> str:
    m = _AUTH_RE.search(api_code)
    if not m:
        raise HarnessError("Cannot find an Authorization bearer token in the API code")
    return m.group(1)


def extract_workflow_id(api_code: str) -> str:
    m = _WORKFLOW_URL_RE.search(api_code)
    if m:
        return m.group(1)
    m = _WORKFLOW_ID_RE.search(api_code)
    if m:
        return m.group(1)
    raise HarnessError("Cannot find a workflow id in the API code")
