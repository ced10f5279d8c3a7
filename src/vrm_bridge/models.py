from typing import Optional

from pydantic import BaseModel, Field, field_validator


class ConversionRequest(BaseModel):
    avatar_name: str = Field(default="Converted Avatar", description="Display name stored in the VRM meta block")
    author: Optional[str] = Field(
        default=None,
        description="Author stored in the VRM meta block; defaults to the configured author",
    )
    version: str = Field(default="1.0", description="Avatar version stored in the VRM meta block")
    save: bool = Field(default=False, description="Persist the converted VRM to the avatars directory")

    @field_validator("avatar_name")
    @classmethod
    def validate_avatar_name(cls, value: str) -> str:
        if not value.strip():
            msg = "avatar_name must not be blank"
            raise ValueError(msg)
        return value


class ConversionSummary(BaseModel):
    status: str
    mapped_bones: int
    warnings: list[str]
    saved_path: Optional[str] = None
