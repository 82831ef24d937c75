from .checker import BatchChecker, RegistryCheckResult, ServiceCheckResult

__all__ = ["BatchChecker", "RegistryCheckResult", "ServiceCheckResult"]
