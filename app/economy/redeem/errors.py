class RedeemCodeError(Exception):
    pass


class RedeemCodeNotFoundError(RedeemCodeError):
    pass


class RedeemQuestionSetNotFoundError(RedeemCodeNotFoundError):
    pass


class RedeemCodeAlreadyUsedError(RedeemCodeError):
    pass


class RedeemCodeMisconfiguredError(RedeemCodeError):
    pass


class RedeemCodeValidationError(RedeemCodeError):
    pass


class RedeemCodeGenerationError(RedeemCodeError):
    pass
