"""histvault核心异常类."""

from typing import Any


class HistVaultError(Exception):
    """histvault基础异常类."""

    def __init__(
        self,
        message: str,
        error_code: str = "GENERAL_ERROR",
        details: dict[str, Any] | None = None,
    ):
        """初始化异常.

        Args:
            message: 错误消息
            error_code: 错误代码
            details: 额外详情
        """
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.details = details or {}

    def to_payload(self) -> dict[str, Any]:
        """Return a serializable payload representing the error."""

        payload: dict[str, Any] = {"code": self.error_code, "message": self.message}
        if self.details:
            payload["details"] = dict(self.details)
        return payload


class ConfigurationError(HistVaultError):
    """Invalid run-level parameter; aborts the whole run."""

    def __init__(
        self,
        message: str,
        parameter: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        super_details = details or {}
        if parameter:
            super_details["parameter"] = parameter
        super().__init__(message, "CONFIGURATION_ERROR", super_details)
        self.parameter = parameter


class UnsupportedCombination(HistVaultError):
    """Resolution/security type pairing that cannot be planned."""

    def __init__(
        self,
        message: str,
        resolution: str | None = None,
        security_type: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        super_details = details or {}
        if resolution is not None:
            super_details["resolution"] = resolution
        if security_type is not None:
            super_details["security_type"] = security_type
        super().__init__(message, "UNSUPPORTED_COMBINATION", super_details)


class ProviderUnavailable(HistVaultError):
    """数据提供商无法访问 (network/auth)."""

    def __init__(
        self,
        message: str,
        provider_name: str,
        error_code: str = "PROVIDER_UNAVAILABLE",
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message, error_code, details)
        self.provider_name = provider_name


class RateLimitError(ProviderUnavailable):
    """速率限制异常."""

    def __init__(
        self,
        message: str,
        provider_name: str,
        retry_after: int | None = None,
        details: dict[str, Any] | None = None,
    ):
        super_details = details or {}
        if retry_after is not None:
            super_details["retry_after"] = retry_after
        super().__init__(message, provider_name, "RATE_LIMIT_ERROR", super_details)
        self.retry_after = retry_after


class AuthenticationError(ProviderUnavailable):
    """认证异常."""

    def __init__(
        self,
        message: str,
        provider_name: str,
        auth_method: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        super_details = details or {}
        if auth_method:
            super_details["auth_method"] = auth_method
        super().__init__(message, provider_name, "AUTHENTICATION_ERROR", super_details)


class NetworkError(ProviderUnavailable):
    """网络异常."""

    def __init__(
        self,
        message: str,
        provider_name: str,
        status_code: int | None = None,
        details: dict[str, Any] | None = None,
    ):
        super_details = details or {}
        if status_code is not None:
            super_details["status_code"] = status_code
        super().__init__(message, provider_name, "NETWORK_ERROR", super_details)
        self.status_code = status_code


class EmptyResult(HistVaultError):
    """Provider answered but returned no observations."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message, "EMPTY_RESULT", details)


class ObservationRejected(HistVaultError):
    """Observations violate a write-time invariant."""

    def __init__(
        self,
        message: str,
        index: int | None = None,
        details: dict[str, Any] | None = None,
    ):
        super_details = details or {}
        if index is not None:
            super_details["index"] = index
        super().__init__(message, "OBSERVATION_REJECTED", super_details)
        self.index = index


class WriteFailure(HistVaultError):
    """Persisting a batch into the store failed."""

    def __init__(
        self,
        message: str,
        location: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        super_details = details or {}
        if location:
            super_details["location"] = location
        super().__init__(message, "WRITE_FAILURE", super_details)
        self.location = location
