class StudyError(Exception):
    pass


class StudyNotFoundError(StudyError):
    pass


class StudyValidationError(StudyError):
    pass
