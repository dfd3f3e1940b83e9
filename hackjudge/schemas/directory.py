"""
Directory input schemas: teams and judges.
"""
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from hackjudge.orm.judge import JudgeType


def _require_text(v: str, field_name: str) -> str:
    if v is None or not v.strip():
        raise ValueError(f"{field_name} cannot be empty")
    return v.strip()


class TeamCreate(BaseModel):
    team_code: str = Field(..., max_length=64)
    name: str = Field(..., max_length=255)
    domain_key: str = Field(..., max_length=64)
    problem_statement: str
    idea_description: Optional[str] = None

    @field_validator('team_code', 'name', 'problem_statement')
    @classmethod
    def validate_required_text(cls, v: str, info) -> str:
        return _require_text(v, info.field_name)

    @field_validator('domain_key')
    @classmethod
    def normalize_domain_key(cls, v: str) -> str:
        return _require_text(v, "domain_key").lower()


class TeamUpdate(BaseModel):
    """Editable team fields. The domain is changed only by reassignment."""
    name: Optional[str] = Field(None, max_length=255)
    problem_statement: Optional[str] = None
    idea_description: Optional[str] = None

    @field_validator('name', 'problem_statement')
    @classmethod
    def validate_optional_text(cls, v: Optional[str], info) -> Optional[str]:
        if v is None:
            return v
        return _require_text(v, info.field_name)


class JudgeCreate(BaseModel):
    judge_code: str = Field(..., max_length=64)
    name: str = Field(..., max_length=255)
    judge_type: JudgeType

    @field_validator('judge_code', 'name')
    @classmethod
    def validate_required_text(cls, v: str, info) -> str:
        return _require_text(v, info.field_name)


class JudgeUpdate(BaseModel):
    name: Optional[str] = Field(None, max_length=255)
    judge_code: Optional[str] = Field(None, max_length=64)
    judge_type: Optional[JudgeType] = None

    @field_validator('judge_code', 'name')
    @classmethod
    def validate_optional_text(cls, v: Optional[str], info) -> Optional[str]:
        if v is None:
            return v
        return _require_text(v, info.field_name)
