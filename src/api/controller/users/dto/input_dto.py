"""
Input DTOs for user profile endpoints.
"""

from pydantic import BaseModel, ConfigDict, Field, field_validator


class UpdateUserRequestDto(BaseModel):
    """Only the display name can be changed."""

    model_config = ConfigDict(extra="forbid")

    name: str = Field(..., min_length=1, max_length=100, description="Display name")

    @field_validator('name')
    @classmethod
    def validate_name(cls, v):
        if not v.strip():
            raise ValueError('Name cannot be empty')
        return v.strip()
