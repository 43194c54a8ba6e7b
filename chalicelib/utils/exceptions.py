__all__ = ["DomainError", "ValidationError", "Unauthenticated", "Forbidden", "NotFound", "Conflict",
           "UpstreamFailure", "UpstreamTimeout", "FactoryRejected", "RecordNotFound", "ConditionNotMet", "NumberOfRetriesExceeded"]


class DomainError(Exception):
    STATUS_CODE = 500
    LEVEL = 'exception'


# Request exceptions
class ValidationError(DomainError):
    STATUS_CODE = 400
    LEVEL = 'warning'


class Unauthenticated(DomainError):
    STATUS_CODE = 401
    LEVEL = 'info'


class Forbidden(DomainError):
    STATUS_CODE = 403
    LEVEL = 'warning'


class NotFound(DomainError):
    STATUS_CODE = 404
    LEVEL = 'info'


class Conflict(DomainError):
    STATUS_CODE = 409
    LEVEL = 'warning'


# Pizza factory exceptions
class UpstreamFailure(DomainError):
    STATUS_CODE = 502
    LEVEL = 'error'


class UpstreamTimeout(UpstreamFailure):
    STATUS_CODE = 504


class FactoryRejected(UpstreamFailure):
    pass


# DynamoDB exceptions
class RecordNotFound(Exception):
    pass


class ConditionNotMet(Exception):
    pass


# DB Performance Exception
class NumberOfRetriesExceeded(Exception):
    pass
