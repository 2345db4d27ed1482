from __future__ import annotations

from fastapi import APIRouter, Depends

from src.adapters.api.dependencies import get_wallet_service
from src.adapters.api.schemas.wallet import (
    BalanceSchema,
    DepositRequestSchema,
    WithdrawalOptionsSchema,
    WithdrawalRequestSchema,
    WithdrawalSchema,
)
from src.app.services.wallet_service import WalletService

router = APIRouter(prefix="/wallet", tags=["wallet"])


@router.get("/{user_id}/balance", response_model=BalanceSchema)
async def get_balance(
    user_id: str,
    service: WalletService = Depends(get_wallet_service),
) -> BalanceSchema:
    return BalanceSchema(user_id=user_id, balance=await service.balance(user_id))


@router.post("/deposits", response_model=BalanceSchema)
async def deposit(
    req: DepositRequestSchema,
    service: WalletService = Depends(get_wallet_service),
) -> BalanceSchema:
    new_balance = await service.deposit(
        passenger_id=req.passenger_id, amount=req.amount
    )
    return BalanceSchema(user_id=req.passenger_id, balance=new_balance)


@router.get("/{driver_id}/withdrawal-options", response_model=WithdrawalOptionsSchema)
async def withdrawal_options(
    driver_id: str,
    service: WalletService = Depends(get_wallet_service),
) -> WithdrawalOptionsSchema:
    options = await service.withdrawal_options(driver_id)
    return WithdrawalOptionsSchema(driver_id=driver_id, options=list(options))


@router.post("/withdrawals", response_model=WithdrawalSchema)
async def withdraw(
    req: WithdrawalRequestSchema,
    service: WalletService = Depends(get_wallet_service),
) -> WithdrawalSchema:
    amount = await service.withdraw(driver_id=req.driver_id, amount=req.amount)
    return WithdrawalSchema(driver_id=req.driver_id, amount=amount)
