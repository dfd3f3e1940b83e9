"""
Hackathon Pitch Rubric - Scoring Criteria Definitions

Six criteria plus a bonus field. Bounds are read from settings at
validation time (0..CRITERION_MAX_SCORE, 0..BONUS_MAX_SCORE).
"""
from decimal import Decimal
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field, field_validator

from hackjudge.config.settings import settings


class RubricInput(BaseModel):
    """
    Complete rubric for one judge's score of one team.

    Total score = sum of the six criteria + bonus
    """

    problem_identification: Decimal = Field(..., description="Clarity of the problem being solved")
    innovation_creativity: Decimal = Field(..., description="Novelty of the idea and approach")
    feasibility_practicality: Decimal = Field(..., description="Can it realistically be built and run")
    market_impact_potential: Decimal = Field(..., description="Size of the opportunity and impact")
    technology_domain_relevance: Decimal = Field(..., description="Fit of the technology to the domain")
    pitch_delivery_qa: Decimal = Field(..., description="Pitch quality and answers to questions")
    bonus: Decimal = Field(Decimal("0"), description="Discretionary bonus points")

    @field_validator(
        'problem_identification', 'innovation_creativity', 'feasibility_practicality',
        'market_impact_potential', 'technology_domain_relevance', 'pitch_delivery_qa'
    )
    @classmethod
    def validate_criterion_range(cls, v: Decimal) -> Decimal:
        """Ensure criterion is within 0..CRITERION_MAX_SCORE."""
        maximum = settings.CRITERION_MAX_SCORE
        if v < 0 or v > maximum:
            raise ValueError(f'Score must be between 0 and {maximum}')
        return v

    @field_validator('bonus', mode='before')
    @classmethod
    def default_missing_bonus(cls, v: Any) -> Any:
        return Decimal("0") if v is None else v

    @field_validator('bonus')
    @classmethod
    def validate_bonus_range(cls, v: Decimal) -> Decimal:
        """Ensure bonus is within 0..BONUS_MAX_SCORE."""
        maximum = settings.BONUS_MAX_SCORE
        if v < 0 or v > maximum:
            raise ValueError(f'Bonus must be between 0 and {maximum}')
        return v

    def as_mapping(self) -> Dict[str, Decimal]:
        return self.model_dump()


class ScoreEntry(RubricInput):
    """One entry of a bulk submission."""
    team_id: int = Field(..., gt=0)


class AdminScoreEntry(ScoreEntry):
    """Bulk entry made by an organizer on a judge's behalf."""
    judge_id: int = Field(..., gt=0)


def max_total() -> Decimal:
    """Largest total a single score can reach under current settings."""
    return settings.CRITERION_MAX_SCORE * 6 + settings.BONUS_MAX_SCORE


def describe_rubric(maximum: Optional[Decimal] = None) -> Dict[str, Any]:
    """Rubric description for judge-facing tooling."""
    maximum = maximum if maximum is not None else settings.CRITERION_MAX_SCORE
    return {
        "criteria": {
            name: {"min": 0, "max": float(maximum), "description": field.description}
            for name, field in RubricInput.model_fields.items()
            if name != "bonus"
        },
        "bonus": {"min": 0, "max": float(settings.BONUS_MAX_SCORE)},
        "max_total": float(max_total()),
    }
