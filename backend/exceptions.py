class AppError(Exception):
    """Base exception for application errors."""
    def __init__(self, message: str, status_code: int = 500):
        super().__init__(message)
        self.status_code = status_code
        self.message = message

class NotFoundError(AppError):
    """Raised when a resource is not found."""
    def __init__(self, message: str):
        super().__init__(message, status_code=404)

class ValidationError(AppError):
    """Raised when input validation fails."""
    def __init__(self, message: str):
        super().__init__(message, status_code=400)

##### REPORT STORE EXCEPTIONS #####

class ReportNotFoundError(NotFoundError):
    """Raised when an ingested report is not found."""
    def __init__(self, report_id: str):
        super().__init__(f"Report {report_id} not found")

class InsightNotFoundError(NotFoundError):
    """Raised when a report insight is not found."""
    def __init__(self, insight_id: str):
        super().__init__(f"Insight {insight_id} not found")

class ConnectionNotFoundError(NotFoundError):
    """Raised when an API connection is not found."""
    def __init__(self, connection_id: str):
        super().__init__(f"API connection {connection_id} not found")

##### EXTERNAL SERVICE EXCEPTIONS #####

class LLMGatewayError(AppError):
    """Raised when the LLM gateway rejects or fails a call.

    status_code mirrors the gateway where it matters to the user (429, 402),
    everything else surfaces as 500.
    """
    RATE_LIMITED = "Rate limit exceeded. Please try again later."
    CREDITS_EXHAUSTED = "AI credits exhausted. Please add funds to continue."
    NOT_CONFIGURED = "AI service not configured"

    def __init__(self, message: str, status_code: int = 500):
        super().__init__(message, status_code=status_code)

    @classmethod
    def from_status(cls, status_code: int, fallback_message: str) -> "LLMGatewayError":
        if status_code == 429:
            return cls(cls.RATE_LIMITED, status_code=429)
        if status_code == 402:
            return cls(cls.CREDITS_EXHAUSTED, status_code=402)
        return cls(fallback_message, status_code=500)

class IngestionError(AppError):
    """Raised when a regulatory portal fetch cannot be performed.

    details are merged into the error response body (e.g. source and url of a failed scrape).
    """
    def __init__(self, message: str, status_code: int = 500, portal: str = None, details: dict = None):
        super().__init__(message, status_code=status_code)
        self.portal = portal
        self.details = details or {}
