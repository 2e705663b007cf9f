from submission_review.registry.step_registry import StepRegistry

__all__ = ["StepRegistry"]
