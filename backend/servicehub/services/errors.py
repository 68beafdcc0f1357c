class ServiceHubError(ValueError):
    """Base class for user-visible domain errors."""


class ValidationError(ServiceHubError):
    pass


class AuthenticationError(ServiceHubError):
    pass


class PermissionDeniedError(ServiceHubError):
    pass


class NotFoundError(ServiceHubError):
    pass


class ConflictError(ServiceHubError):
    pass
