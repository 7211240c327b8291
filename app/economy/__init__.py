from app.economy.purchases import AccessService, PurchaseService
from app.economy.redeem import RedeemCodeService, RedemptionWorkflow

__all__ = [
    "AccessService",
    "PurchaseService",
    "RedeemCodeService",
    "RedemptionWorkflow",
]
