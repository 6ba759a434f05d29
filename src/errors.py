from botocore.exceptions import ClientError


class ServiceError(Exception):
    """A Glacier or STS call failed."""

    def __init__(self, operation, cause):
        self.operation = operation
        self.cause = cause
        self.code = None
        if isinstance(cause, ClientError):
            self.code = cause.response.get("Error", {}).get("Code")
        self.message = f"{operation} failed: {cause}"
        super().__init__(self.message)

    @property
    def is_not_found(self):
        return self.code == "ResourceNotFoundException"


class ParseError(Exception):
    def __init__(self, message):
        self.message = f"Invalid inventory payload: {message}"
        super().__init__(self.message)


class PreconditionViolation(Exception):
    def __init__(self, message):
        self.message = message
        super().__init__(self.message)
