from fastapi import status


class ServiceError(Exception):
    """Base exception for service layer errors."""

    def __init__(self, message: str, status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class RetryableLedgerError(ServiceError):
    """Storage failure while applying a payment. Nothing was committed; the notification must be redelivered."""

    def __init__(self, message: str = "Ledger update failed, retry later") -> None:
        super().__init__(message, status.HTTP_503_SERVICE_UNAVAILABLE)
