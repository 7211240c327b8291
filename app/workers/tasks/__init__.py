from app.workers.tasks.entitlement_expiry import run_entitlement_expiry_reminders

__all__ = [
    "run_entitlement_expiry_reminders",
]
