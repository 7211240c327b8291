from app.economy.redeem.service import RedeemCodeService, RedemptionWorkflow

__all__ = ["RedeemCodeService", "RedemptionWorkflow"]
