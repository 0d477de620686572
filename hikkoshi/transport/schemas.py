# hikkoshi/transport/schemas.py
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class _CamelModel(BaseModel):
    # The wizard front-end posts camelCase; unknown keys are ignored
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class AddressIn(_CamelModel):
    prefecture: str | None = None
    city: str | None = None
    town: str | None = None


class DatesIn(_CamelModel):
    pickup_date: str | None = Field(default=None, alias="pickupDate")
    delivery_date: str | None = Field(default=None, alias="deliveryDate")


class EstimateCreateIn(_CamelModel):
    pickup_address: AddressIn | None = Field(default=None, alias="pickupAddress")
    delivery_address: AddressIn | None = Field(default=None, alias="deliveryAddress")
    dates: DatesIn | None = None
    total_fee: float | None = Field(default=None, alias="totalFee")
    distance_km: float | None = Field(default=None, alias="distanceKm")

    def to_row(self) -> dict[str, Any]:
        """Flat column → value mapping for the estimate store."""
        pickup = self.pickup_address or AddressIn()
        delivery = self.delivery_address or AddressIn()
        dates = self.dates or DatesIn()
        return {
            "pickup_prefecture": pickup.prefecture or "",
            "pickup_city": pickup.city or "",
            "pickup_town": pickup.town or "",
            "delivery_prefecture": delivery.prefecture or "",
            "delivery_city": delivery.city or "",
            "delivery_town": delivery.town or "",
            "pickup_date": dates.pickup_date or "",
            "delivery_date": dates.delivery_date or "",
            "total_fee": self.total_fee or 0,
            "distance_km": self.distance_km or 0,
        }


class EstimateCreateOut(BaseModel):
    success: bool = True
    estimateId: str
    liffUrl: str


class LinkIn(_CamelModel):
    estimate_id: str | None = Field(default=None, alias="estimateId")
    line_user_id: str | None = Field(default=None, alias="lineUserId")
