"""Plangate exception hierarchy."""


class PlangateError(Exception):
    """Base exception for all Plangate errors."""

    def __init__(self, message: str = "", code: str = "PLANGATE_ERROR"):
        self.message = message
        self.code = code
        super().__init__(message)


class PlanNotFoundError(PlangateError):
    """Raised when a plan cannot be found.

    When raised by the fallback lookup during resolution this is a
    configuration problem (the fallback plan is missing), not a bad request.
    """

    def __init__(self, message: str = "Plan not found"):
        super().__init__(message, code="PLAN_NOT_FOUND")


class UserNotFoundError(PlangateError):
    """Raised when a user id does not exist."""

    def __init__(self, message: str = "User not found"):
        super().__init__(message, code="USER_NOT_FOUND")


class FeatureNotFoundError(PlangateError):
    """Raised when a feature key is not in the catalog."""

    def __init__(self, message: str = "Feature not found"):
        super().__init__(message, code="FEATURE_NOT_FOUND")


class ProtectedPlanError(PlangateError):
    """Raised when deleting the fallback plan."""

    def __init__(self, message: str = "The fallback plan cannot be deleted"):
        super().__init__(message, code="PROTECTED_PLAN")


class DuplicateError(PlangateError):
    """Raised when creating a row whose unique key already exists."""

    def __init__(self, message: str = "Resource already exists"):
        super().__init__(message, code="DUPLICATE")
