import pytest
import yaml

from submission_review.models.policy import ReviewPolicy, StepDefinition
from submission_review.models.review import ReviewStepStatus
from submission_review.registry.step_registry import StepRegistry
from submission_review.utils.exceptions import PolicyValidationError, ReviewValidationError


def test_default_steps_order_and_status():
    steps = StepRegistry().get_default_steps()
    assert [s.id for s in steps] == [
        "basic_info_check",
        "workflow_file_check",
        "external_api_test",
        "final_approval",
    ]
    assert all(s.status == ReviewStepStatus.PENDING for s in steps)
    assert all(s.rejection_reason is None for s in steps)


def test_default_steps_are_fresh_copies():
    registry = StepRegistry()
    first = registry.get_default_steps()
    first[0].status = ReviewStepStatus.APPROVED
    assert registry.get_default_steps()[0].status == ReviewStepStatus.PENDING


def test_rejection_options_per_step():
    registry = StepRegistry()
    options = registry.get_rejection_options("workflow_file_check")
    assert options[0] == "工作流文件缺失或无法下载"
    assert len(options) == 6


def test_unknown_step_falls_back():
    assert StepRegistry().get_rejection_options("nope") == ["审核未通过"]


def test_validate_reasons_requires_one():
    registry = StepRegistry()
    with pytest.raises(ReviewValidationError):
        registry.validate_reasons("basic_info_check", [])
    with pytest.raises(ReviewValidationError):
        registry.validate_reasons("basic_info_check", ["  ", ""])
    assert registry.validate_reasons("basic_info_check", [" 违反平台规则 "]) == ["违反平台规则"]


def test_policy_from_yaml(tmp_path):
    path = tmp_path / "policy.yaml"
    path.write_text(yaml.dump({
        "fallback_reason": "not passed",
        "steps": [
            {"id": "a", "name": "A", "rejection_reasons": ["bad a"]},
            {"id": "b", "name": "B"},
        ],
    }))
    registry = StepRegistry.from_yaml(path)
    assert [s.id for s in registry.get_default_steps()] == ["a", "b"]
    assert registry.get_rejection_options("a") == ["bad a"]
    # Steps without their own reasons use the fallback
    assert registry.get_rejection_options("b") == ["not passed"]


def test_duplicate_step_ids_rejected():
    policy = ReviewPolicy(steps=[StepDefinition(id="a", name="A"), StepDefinition(id="a", name="A2")])
    with pytest.raises(PolicyValidationError, match="Duplicate"):
        StepRegistry(policy)


def test_empty_policy_rejected(tmp_path):
    path = tmp_path / "policy.yaml"
    path.write_text(yaml.dump({"steps": []}))
    with pytest.raises(PolicyValidationError):
        StepRegistry.from_yaml(path)


def test_get_step_unknown_raises():
    with pytest.raises(KeyError):
        StepRegistry().get_step("missing")
