from pathlib import Path

import yaml

from submission_review.models.policy import ReviewPolicy
from submission_review.utils.exceptions import PolicyValidationError

DEFAULT_POLICY_PATH = Path(__file__).parent / "default_policy.yaml"


def load_policy_from_yaml(path: str | Path) -> ReviewPolicy:
    with open(path, encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    policy = ReviewPolicy.model_validate(data)
    validate_policy(policy)
    return policy


def validate_policy(policy: ReviewPolicy) -> None:
    if not policy.steps:
        raise PolicyValidationError("Review policy must define at least one step")

    seen: set[str] = set()
    for step in policy.steps:
        if not step.id:
            raise PolicyValidationError("Review step is missing an id")
        if step.id in seen:
            raise PolicyValidationError(f"Duplicate review step id: {step.id}")
        seen.add(step.id)

    if not policy.fallback_reason:
        raise PolicyValidationError("Review policy must define a fallback rejection reason")
