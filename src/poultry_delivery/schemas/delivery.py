"""Delivery request/response and webhook schemas."""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional, Union

from pydantic import BaseModel, Field

from ..models.domain import (
    Contact,
    DeliveryQuote,
    DeliveryRecord,
    Driver,
    Location,
    ServiceType,
    Stop,
)


class LocationModel(BaseModel):
    lat: Union[str, float]
    lng: Union[str, float]

    def to_domain(self) -> Location:
        return Location(lat=str(self.lat), lng=str(self.lng))


class ContactModel(BaseModel):
    name: str
    phone: str


class StopModel(BaseModel):
    location: LocationModel
    address: str
    contacts: List[ContactModel] = Field(default_factory=list)

    def to_domain(self) -> Stop:
        return Stop(
            location=self.location.to_domain(),
            address=self.address,
            contacts=[Contact(name=c.name, phone=c.phone) for c in self.contacts],
        )


class QuoteRequest(BaseModel):
    serviceType: ServiceType = ServiceType.MOTORCYCLE
    stops: List[StopModel]
    language: Optional[str] = Field(default=None, description="Locale for provider-side copy, e.g. en_PH.")


class QuotedStopModel(BaseModel):
    stopId: Optional[str] = None
    location: LocationModel
    address: str


class QuoteResponse(BaseModel):
    quotationId: str
    totalFee: float
    currency: str
    expiresAt: Optional[str] = None
    stops: List[QuotedStopModel]

    @classmethod
    def from_domain(cls, quote: DeliveryQuote) -> "QuoteResponse":
        return cls(
            quotationId=quote.quotation_id,
            totalFee=quote.total_fee,
            currency=quote.currency,
            expiresAt=quote.expires_at,
            stops=[
                QuotedStopModel(
                    stopId=stop.stop_id,
                    location=LocationModel(lat=stop.location.lat, lng=stop.location.lng),
                    address=stop.address,
                )
                for stop in quote.stops
            ],
        )


class CreateDeliveryRequest(BaseModel):
    orderId: str = Field(..., description="Marketplace order to dispatch.")


class DriverModel(BaseModel):
    name: Optional[str] = None
    phone: Optional[str] = None
    plate: Optional[str] = None
    photo: Optional[str] = None
    driverId: Optional[str] = None

    @classmethod
    def from_domain(cls, driver: Driver) -> "DriverModel":
        return cls(
            name=driver.name,
            phone=driver.phone,
            plate=driver.plate,
            photo=driver.photo,
            driverId=driver.driver_id,
        )

    def to_domain(self) -> Driver:
        return Driver(name=self.name, phone=self.phone, plate=self.plate, photo=self.photo, driver_id=self.driverId)


class PriceModel(BaseModel):
    amount: float
    currency: str


class DeliveryRecordModel(BaseModel):
    orderId: str
    providerOrderId: str
    status: str
    price: PriceModel
    serviceType: str
    quoteId: str
    driver: Optional[DriverModel] = None
    currentLocation: Optional[LocationModel] = None
    shareLink: Optional[str] = None
    createdAt: datetime
    updatedAt: datetime

    @classmethod
    def from_domain(cls, order_id: str, record: DeliveryRecord) -> "DeliveryRecordModel":
        location = record.current_location
        return cls(
            orderId=order_id,
            providerOrderId=record.provider_order_id,
            status=record.status.value,
            price=PriceModel(amount=record.price.amount, currency=record.price.currency),
            serviceType=record.service_type,
            quoteId=record.quote_id,
            driver=DriverModel.from_domain(record.driver) if record.driver else None,
            currentLocation=LocationModel(lat=location.lat, lng=location.lng) if location else None,
            shareLink=record.share_link,
            createdAt=record.created_at,
            updatedAt=record.updated_at,
        )


class CreateDeliveryResponse(BaseModel):
    orderId: str
    dispatched: bool
    delivery: Optional[DeliveryRecordModel] = None
    message: str


class WebhookData(BaseModel):
    orderId: str
    status: Optional[str] = None
    driver: Optional[DriverModel] = None
    location: Optional[LocationModel] = None
    reason: Optional[str] = None


class WebhookPayload(BaseModel):
    data: WebhookData
