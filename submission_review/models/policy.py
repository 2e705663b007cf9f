from pydantic import BaseModel


class StepDefinition(BaseModel):
    id: str
    name: str
    description: str = ""
    rejection_reasons: list[str] = []


class ReviewPolicy(BaseModel):
    steps: list[StepDefinition]
    fallback_reason: str = "审核未通过"
