# hikkoshi/core/wizard/forms.py
"""
Wizard input models (pydantic).

Step 0 collects dates, step 1 the two addresses, step 2 the floor /
elevator / packing conditions. Validation messages are user-facing
Japanese. ``to_domain()`` converts each form to the engine's dataclasses.
"""
from __future__ import annotations

from datetime import date

from pydantic import BaseModel, Field, field_validator, model_validator

from hikkoshi.core.pricing.models import Address, EstimateOptions, MovingDates
from hikkoshi.core.wizard.prefectures import is_prefecture

MIN_FLOOR = 1
MAX_FLOOR = 50
DEFAULT_FLOOR = 1


class AddressForm(BaseModel):
    prefecture: str = Field(min_length=1)
    city: str = Field(min_length=1, max_length=100)
    town: str = Field(min_length=1, max_length=100)

    @field_validator("prefecture")
    @classmethod
    def _known_prefecture(cls, value: str) -> str:
        if not is_prefecture(value):
            raise ValueError("有効な都道府県を選択してください")
        return value

    def to_domain(self) -> Address:
        return Address(prefecture=self.prefecture, city=self.city, town=self.town)


class MovingDatesForm(BaseModel):
    pickup_date: date
    delivery_date: date

    @model_validator(mode="after")
    def _delivery_not_before_pickup(self) -> "MovingDatesForm":
        if self.delivery_date < self.pickup_date:
            raise ValueError("お届け日は集荷日以降の日付を選択してください")
        return self

    def to_domain(self) -> MovingDates:
        return MovingDates(
            pickup_date=self.pickup_date.isoformat(),
            delivery_date=self.delivery_date.isoformat(),
        )


class ConditionForm(BaseModel):
    has_elevator_pickup: bool = False
    floor_pickup: int = Field(default=DEFAULT_FLOOR, ge=MIN_FLOOR, le=MAX_FLOOR)
    has_elevator_delivery: bool = False
    floor_delivery: int = Field(default=DEFAULT_FLOOR, ge=MIN_FLOOR, le=MAX_FLOOR)
    needs_packing: bool = False

    def to_domain(self) -> EstimateOptions:
        return EstimateOptions(
            has_elevator_pickup=self.has_elevator_pickup,
            floor_pickup=self.floor_pickup,
            has_elevator_delivery=self.has_elevator_delivery,
            floor_delivery=self.floor_delivery,
            needs_packing=self.needs_packing,
        )


class QuoteRequest(BaseModel):
    """Everything the final wizard step submits."""
    pickup_address: AddressForm
    delivery_address: AddressForm
    dates: MovingDatesForm
    options: ConditionForm = Field(default_factory=ConditionForm)
