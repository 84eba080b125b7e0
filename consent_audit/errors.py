class AuditError(Exception):
    pass


class ConfigurationError(AuditError):
    pass


class AuthenticationError(AuditError):
    pass


class GraphError(AuditError):
    def __init__(self, status: int, url: str, message: str = ""):
        super().__init__(message or f"Graph API error {status} for {url}")
        self.status = status
        self.url = url


class MalformedResponseError(GraphError):
    """The service answered but the body could not be deserialized."""
