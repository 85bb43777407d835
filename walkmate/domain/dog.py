"""Dog domain models and enums."""

from enum import StrEnum
from typing import Any

from pydantic import BaseModel, Field


class DogSize(StrEnum):
    """Dog size class."""

    S = "S"  # under 10kg
    M = "M"  # 10-25kg
    L = "L"  # over 25kg


class Dog(BaseModel):
    """Dog data transfer object."""

    id: str = Field(..., description="Unique dog ID")
    owner_id: str = Field(..., description="Profile ID of the owner, fixed at creation")
    name: str = Field(..., description="Dog name")
    breed: str = Field(..., description="Breed label")
    size: DogSize = Field(..., description="Size class")
    notes: str | None = Field(default=None, description="Temperament and care notes")
    image_url: str | None = Field(default=None, description="Public URL of the dog photo")

    @classmethod
    def from_record(cls, record: dict[str, Any], *, image_url: str | None = None) -> "Dog":
        """Build a dog from a dogs record; image_url is resolved by the caller."""
        return cls(
            id=record["id"],
            owner_id=record["owner_id"],
            name=record["name"],
            breed=record["breed"],
            size=record["size"],
            notes=record.get("notes") or None,
            image_url=image_url,
        )
