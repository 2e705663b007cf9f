class SubmissionReviewError(Exception):
    pass


class PolicyValidationError(SubmissionReviewError):
    pass


class ReviewValidationError(SubmissionReviewError):
    pass


class ReviewStateError(SubmissionReviewError):
    pass


class ReviewConflictError(SubmissionReviewError):
    pass


class ReviewLockedError(SubmissionReviewError):
    pass


class FinalizationError(SubmissionReviewError):
    pass


class HarnessError(SubmissionReviewError):
    pass
