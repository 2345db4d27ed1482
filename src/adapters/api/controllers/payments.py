from __future__ import annotations

from fastapi import APIRouter, Depends

from src.adapters.api.dependencies import get_fare_payment_service
from src.adapters.api.schemas.wallet import (
    PaymentSchema,
    SingleTicketRequestSchema,
    TicketPaymentRequestSchema,
)
from src.app.services.fare_payment_service import FarePaymentService
from src.domain.models import PassengerCounts, PassengerType

router = APIRouter(prefix="/payments", tags=["payments"])


@router.post("/tickets", response_model=PaymentSchema)
async def pay_tickets(
    req: TicketPaymentRequestSchema,
    service: FarePaymentService = Depends(get_fare_payment_service),
) -> PaymentSchema:
    counts = PassengerCounts(
        adults=req.passengers.adults,
        children=req.passengers.children,
        students=req.passengers.students,
    )
    amount = await service.pay(
        passenger_id=req.passenger_id, bus_id=req.bus_id, counts=counts
    )
    return PaymentSchema(
        passenger_id=req.passenger_id, bus_id=req.bus_id, amount=amount
    )


@router.post("/tickets/single", response_model=PaymentSchema)
async def pay_single_ticket(
    req: SingleTicketRequestSchema,
    service: FarePaymentService = Depends(get_fare_payment_service),
) -> PaymentSchema:
    amount = await service.pay_single(
        passenger_id=req.passenger_id,
        bus_id=req.bus_id,
        passenger_type=PassengerType(req.passenger_type),
    )
    return PaymentSchema(
        passenger_id=req.passenger_id, bus_id=req.bus_id, amount=amount
    )
