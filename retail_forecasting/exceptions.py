class ForecastingError(Exception):
    """Base exception for Retail Forecasting errors."""

    def __init__(self, message=None, code=None, details=None):
        """Initialize the exception.

        Args:
            message: Error message
            code: Error code
            details: Additional error details
        """
        self.message = message or "An error occurred in the Retail Forecasting engine"
        self.code = code
        self.details = details
        super().__init__(self.message)

    def __str__(self):
        """String representation of the error."""
        if self.code:
            return f"[{self.code}] {self.message}"
        return self.message

    def to_dict(self):
        """Convert the exception to a dictionary."""
        error_dict = {
            'error': self.__class__.__name__,
            'message': self.message,
        }

        if self.code:
            error_dict['code'] = self.code

        if self.details:
            error_dict['details'] = self.details

        return error_dict


class ConfigError(ForecastingError):
    """Exception raised for configuration errors."""

    def __init__(self, message=None, code=None, details=None):
        message = message or "Configuration error"
        super().__init__(message, code, details)


class DatabaseError(ForecastingError):
    """Exception raised for database-related errors."""

    def __init__(self, message=None, code=None, details=None):
        message = message or "Database error"
        super().__init__(message, code, details)


class ValidationError(ForecastingError):
    """Exception raised for data validation errors."""

    def __init__(self, message=None, code=None, details=None):
        message = message or "Validation error"
        super().__init__(message, code, details)


class NotFoundError(ForecastingError):
    """Exception raised when a requested resource is not found."""

    def __init__(self, message=None, code=None, details=None):
        message = message or "Resource not found"
        super().__init__(message, code, details)


class ProductNotFoundError(NotFoundError):
    """Exception raised when a product does not exist in the catalog."""

    def __init__(self, product_id=None, message=None, code='PRODUCT_NOT_FOUND'):
        self.product_id = product_id
        message = message or f"Product {product_id} not found"
        super().__init__(message, code, {'product_id': product_id})


class ForecastError(ForecastingError):
    """Exception raised for forecasting-related errors."""

    def __init__(self, message=None, code=None, details=None):
        message = message or "Forecasting error"
        super().__init__(message, code, details)


class BatchProcessError(ForecastingError):
    """Exception raised for batch process errors."""

    def __init__(self, message=None, code=None, details=None):
        message = message or "Batch process error"
        super().__init__(message, code, details)


class CalculationError(ForecastingError):
    """Exception raised for calculation errors."""

    def __init__(self, message=None, code=None, details=None):
        message = message or "Calculation error"
        super().__init__(message, code, details)
