from pathlib import Path

from submission_review.models.policy import ReviewPolicy, StepDefinition
from submission_review.models.review import ReviewStep, ReviewStepStatus
from submission_review.registry.loader import DEFAULT_POLICY_PATH, load_policy_from_yaml, validate_policy
from submission_review.utils.exceptions import ReviewValidationError


class StepRegistry:
    """Ordered review steps plus the per-step rejection reason catalog."""

    def __init__(self, policy: ReviewPolicy | None = None) -> None:
        if policy is None:
            policy = load_policy_from_yaml(DEFAULT_POLICY_PATH)
        else:
            validate_policy(policy)
        self._policy = policy
        self._steps: dict[str, StepDefinition] = {s.id: s for s in policy.steps}

    @classmethod
    def from_yaml(cls, path: str | Path) -> "StepRegistry":
        return cls(load_policy_from_yaml(path))

    def load_file(self, path: str | Path) -> None:
        policy = load_policy_from_yaml(path)
        self._policy = policy
        self._steps = {s.id: s for s in policy.steps}

    @property
    def policy(self) -> ReviewPolicy:
        return self._policy

    def get_default_steps(self) -> list[ReviewStep]:
        return [
            ReviewStep(
                id=s.id,
                name=s.name,
                description=s.description,
                status=ReviewStepStatus.PENDING,
            )
            for s in self._policy.steps
        ]

    def get_step(self, step_id: str) -> StepDefinition:
        if step_id not in self._steps:
            raise KeyError(f"Review step not found: {step_id}")
        return self._steps[step_id]

    def get_rejection_options(self, step_id: str) -> list[str]:
        step = self._steps.get(step_id)
        if step is None or not step.rejection_reasons:
            return [self._policy.fallback_reason]
        return list(step.rejection_reasons)

    def validate_reasons(self, step_id: str, reasons: list[str]) -> list[str]:
        """Return the cleaned reasons, raising if none remain."""
        cleaned = [r.strip() for r in reasons if r and r.strip()]
        if not cleaned:
            raise ReviewValidationError(
                f"At least one rejection reason is required for step '{step_id}'"
            )
        return cleaned
