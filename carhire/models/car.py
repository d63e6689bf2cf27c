"""Car catalog domain models."""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Optional
from uuid import uuid4

from pydantic import BaseModel, Field


def new_car_id() -> str:
    """Generate an opaque car identifier."""
    return f"car_{uuid4().hex}"


class CarType(str, Enum):
    """Body type of a car."""

    SUV = "SUV"
    SEDAN = "Sedan"
    VAN = "Van"
    HATCHBACK = "Hatchback"
    COUPE = "Coupe"
    CONVERTIBLE = "Convertible"


class Transmission(str, Enum):
    """Gearbox type."""

    AUTOMATIC = "Automatic"
    MANUAL = "Manual"


class Car(BaseModel):
    """Car entity available for hire."""

    id: str = Field(min_length=1)
    name: str = Field(min_length=1, max_length=100)
    model: str = Field(min_length=1, max_length=100)
    image: str = Field(max_length=500)
    price_per_day: Decimal = Field(ge=0, description="Daily rate in local currency")
    type: CarType
    description: str
    capacity: int = Field(gt=0, description="Number of seats")
    transmission: Transmission
    features: list[str] = Field(default_factory=list)
    available: bool = True
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class CarInput(BaseModel):
    """Input model for car creation. The id is generated when omitted."""

    id: str = Field(default_factory=new_car_id, min_length=1)
    name: str = Field(min_length=1, max_length=100)
    model: str = Field(min_length=1, max_length=100)
    image: str = Field(max_length=500)
    price_per_day: Decimal = Field(ge=0)
    type: CarType
    description: str
    capacity: int = Field(gt=0)
    transmission: Transmission
    features: list[str] = Field(default_factory=list)
    available: bool = True

    def differs_from(self, car: Car) -> bool:
        """Check whether any catalog field differs from a stored car."""
        for field in CarPatch.model_fields:
            if getattr(self, field) != getattr(car, field):
                return True
        return False


class CarPatch(BaseModel):
    """Partial update for a car.

    Only fields explicitly set on the patch are written. ``id`` and
    ``created_at`` are not patchable.
    """

    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    model: Optional[str] = Field(default=None, min_length=1, max_length=100)
    image: Optional[str] = Field(default=None, max_length=500)
    price_per_day: Optional[Decimal] = Field(default=None, ge=0)
    type: Optional[CarType] = None
    description: Optional[str] = None
    capacity: Optional[int] = Field(default=None, gt=0)
    transmission: Optional[Transmission] = None
    features: Optional[list[str]] = None
    available: Optional[bool] = None

    def changes(self) -> dict[str, Any]:
        """Return the explicitly set, non-null fields."""
        return {
            key: value
            for key, value in self.model_dump(exclude_unset=True).items()
            if value is not None
        }

    @classmethod
    def from_input(cls, car_input: CarInput) -> "CarPatch":
        """Build a full patch from a catalog entry."""
        return cls(**car_input.model_dump(exclude={"id"}))
