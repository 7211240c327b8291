class PurchaseError(Exception):
    pass


class QuestionSetNotFoundError(PurchaseError):
    pass


class PurchaseNotFoundError(PurchaseError):
    pass


class PurchaseValidationError(PurchaseError):
    pass


class PurchaseAmountMismatchError(PurchaseValidationError):
    pass


class QuestionSetNotPaidError(PurchaseValidationError):
    pass


class PurchaseStateError(PurchaseError):
    pass


class ActiveEntitlementExistsError(PurchaseError):
    pass


class TransactionIdConflictError(PurchaseError):
    pass
