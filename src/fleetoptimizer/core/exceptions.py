"""Custom exceptions for Fleet Optimizer"""

class FleetOptimizerError(Exception):
    """Base exception for all Fleet Optimizer errors"""
    pass


class ConfigurationError(FleetOptimizerError):
    """Raised when configuration is invalid"""
    pass


class ValidationError(FleetOptimizerError):
    """Raised when input validation fails"""
    pass


class InventoryUnavailableError(FleetOptimizerError):
    """Raised when node pool inventory cannot be loaded"""
    pass


class OperationTimeoutError(FleetOptimizerError):
    """Raised when an outbound call exceeds its deadline"""
    pass


class OperationCancelledError(FleetOptimizerError):
    """Raised when the calling context has been cancelled"""
    pass


class CatalogError(FleetOptimizerError):
    """Base exception for pricing catalog failures"""
    pass


class TransientCatalogError(CatalogError):
    """Throttling or temporary endpoint failure, safe to retry"""
    pass


class CatalogAuthorizationError(CatalogError):
    """Raised when the catalog rejects our credentials"""
    pass


class CatalogNotFoundError(CatalogError):
    """Raised when the catalog has no price for the requested type"""
    pass


class ProviderError(FleetOptimizerError):
    """Base exception for provider-specific errors"""
    def __init__(self, provider: str, message: str):
        self.provider = provider
        super().__init__(f"[{provider}] {message}")


class AWSError(ProviderError):
    """AWS-specific errors"""
    def __init__(self, message: str):
        super().__init__("AWS", message)


class LLMError(ProviderError):
    """Text model errors"""
    def __init__(self, message: str):
        super().__init__("LLM", message)
