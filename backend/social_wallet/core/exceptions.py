"""Custom exception classes for the application"""

from typing import Optional, Dict, Any, List


class BaseAPIException(Exception):
    """Base exception for all API errors"""

    code = "INTERNAL_SERVER_ERROR"

    def __init__(
        self,
        message: str,
        status_code: int = 500,
        details: Optional[Dict[str, Any]] = None,
        code: Optional[str] = None,
    ):
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        if code:
            self.code = code
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        return {"code": self.code, "message": self.message, "details": self.details}


# Authentication Errors
class AuthenticationError(BaseAPIException):
    """Base authentication error"""
    code = "AUTHENTICATION_FAILED"

    def __init__(self, message: str = "Authentication failed", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, status_code=401, details=details)


class InvalidCredentialsError(AuthenticationError):
    """Invalid email or password"""
    code = "INVALID_CREDENTIALS"

    def __init__(self):
        super().__init__("Invalid email or password")


class AccountDeactivatedError(AuthenticationError):
    code = "ACCOUNT_DEACTIVATED"

    def __init__(self):
        super().__init__("Account is deactivated")


class InvalidClientCredentialsError(AuthenticationError):
    code = "INVALID_CLIENT_CREDENTIALS"

    def __init__(self):
        super().__init__("Invalid client credentials")


class InvalidAccessTokenError(AuthenticationError):
    code = "INVALID_ACCESS_TOKEN"

    def __init__(self):
        super().__init__("Invalid access token")


class TokenExpiredError(AuthenticationError):
    """Access token has expired"""
    code = "TOKEN_EXPIRED"

    def __init__(self):
        super().__init__("Access token expired")


class InactiveAccountError(AuthenticationError):
    code = "INACTIVE_ACCOUNT"

    def __init__(self):
        super().__init__("Token associated with inactive account")


# Authorization Errors
class AuthorizationError(BaseAPIException):
    """Insufficient permissions"""
    code = "FORBIDDEN"

    def __init__(self, message: str = "Insufficient permissions", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, status_code=403, details=details)


class InsufficientScopeError(AuthorizationError):
    code = "INSUFFICIENT_SCOPE"

    def __init__(self, required: List[str], granted: List[str]):
        super().__init__("Insufficient scope", details={"required": required, "granted": granted})


class SubscriptionInactiveError(AuthorizationError):
    code = "SUBSCRIPTION_INACTIVE"

    def __init__(self, message: str = "Client subscription is not active"):
        super().__init__(message)


class GiftNotAvailableError(AuthorizationError):
    code = "GIFT_NOT_AVAILABLE"

    def __init__(self):
        super().__init__("Gift not available on this platform")


# Resource Errors
class ResourceNotFoundError(BaseAPIException):
    """Resource not found"""
    code = "NOT_FOUND"

    def __init__(self, resource: str):
        super().__init__(f"{resource} not found", status_code=404)


class InvalidClientError(ResourceNotFoundError):
    """Unknown or inactive client on an authorization request"""
    code = "INVALID_CLIENT"

    def __init__(self):
        BaseAPIException.__init__(self, "Invalid client ID", status_code=404)


class WalletNotFoundError(ResourceNotFoundError):
    code = "WALLET_NOT_FOUND"

    def __init__(self):
        super().__init__("Wallet")


class GiftNotFoundError(ResourceNotFoundError):
    code = "GIFT_NOT_FOUND"

    def __init__(self):
        BaseAPIException.__init__(self, "Gift type not found or inactive", status_code=404)


class PaymentNotFoundError(ResourceNotFoundError):
    code = "PAYMENT_NOT_FOUND"

    def __init__(self):
        super().__init__("Payment")


class MarketplaceNotFoundError(ResourceNotFoundError):
    code = "MARKETPLACE_NOT_FOUND"

    def __init__(self):
        BaseAPIException.__init__(self, "Marketplace not enabled for this platform", status_code=404)


class ResourceAlreadyExistsError(BaseAPIException):
    """Resource already exists"""
    code = "ALREADY_EXISTS"

    def __init__(self, resource: str):
        super().__init__(f"{resource} already exists", status_code=409)


class WalletExistsError(ResourceAlreadyExistsError):
    code = "WALLET_EXISTS"

    def __init__(self):
        super().__init__("Wallet")


class DuplicateEmailError(ResourceAlreadyExistsError):
    code = "EMAIL_EXISTS"

    def __init__(self):
        BaseAPIException.__init__(self, "Email already registered", status_code=409)


class DuplicateUsernameError(ResourceAlreadyExistsError):
    code = "USERNAME_EXISTS"

    def __init__(self, username: str):
        BaseAPIException.__init__(self, f"Username '{username}' already taken", status_code=409)


# Validation Errors
class ValidationError(BaseAPIException):
    """Validation error"""
    code = "VALIDATION_ERROR"

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, status_code=400, details=details)


class InvalidScopeError(ValidationError):
    code = "INVALID_SCOPE"

    def __init__(self, invalid: List[str]):
        super().__init__("Unknown scope requested", details={"invalid": invalid})


class InvalidRedirectUriError(ValidationError):
    code = "INVALID_REDIRECT_URI"

    def __init__(self):
        super().__init__("Invalid redirect URI")


class UnsupportedGrantTypeError(ValidationError):
    code = "UNSUPPORTED_GRANT_TYPE"

    def __init__(self, grant_type: str):
        super().__init__("Unsupported grant type", details={"grant_type": grant_type})


class InvalidAmountError(ValidationError):
    code = "INVALID_AMOUNT"

    def __init__(self, message: str = "Amount must be positive"):
        super().__init__(message)


class InvalidTransferError(ValidationError):
    code = "INVALID_TRANSFER"

    def __init__(self):
        super().__init__("Cannot transfer to yourself")


class InvalidRecipientError(ValidationError):
    code = "INVALID_RECIPIENT"

    def __init__(self):
        super().__init__("Cannot send gift to yourself")


class InvalidQuantityError(ValidationError):
    code = "INVALID_QUANTITY"

    def __init__(self):
        super().__init__("Invalid quantity")


class InvalidWebhookSignatureError(ValidationError):
    code = "INVALID_WEBHOOK_SIGNATURE"

    def __init__(self):
        super().__init__("Invalid webhook signature")


class InvalidRevenueShareError(ValidationError):
    code = "INVALID_REVENUE_SHARE"

    def __init__(self):
        super().__init__("Revenue share must be between 0 and 1")


# Business Logic Errors (state conflicts)
class BusinessLogicError(BaseAPIException):
    """Business logic error"""
    code = "BUSINESS_RULE_VIOLATION"

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None, status_code: int = 400):
        super().__init__(message, status_code=status_code, details=details)


class InvalidCodeError(BusinessLogicError):
    code = "INVALID_CODE"

    def __init__(self):
        super().__init__("Invalid authorization code")


class CodeAlreadyUsedError(BusinessLogicError):
    code = "CODE_ALREADY_USED"

    def __init__(self):
        super().__init__("Authorization code already used")


class CodeExpiredError(BusinessLogicError):
    code = "CODE_EXPIRED"

    def __init__(self):
        super().__init__("Authorization code expired")


class CodeValidationFailedError(BusinessLogicError):
    code = "CODE_VALIDATION_FAILED"

    def __init__(self):
        super().__init__("Code validation failed")


class InvalidRefreshTokenError(BusinessLogicError):
    code = "INVALID_REFRESH_TOKEN"

    def __init__(self):
        super().__init__("Invalid refresh token")


class InsufficientBalanceError(BusinessLogicError):
    code = "INSUFFICIENT_BALANCE"

    def __init__(self, required: int, available: int):
        super().__init__(
            "Insufficient balance",
            details={"required": required, "available": available},
        )


class InsufficientQuantityError(BusinessLogicError):
    code = "INSUFFICIENT_QUANTITY"

    def __init__(self, available: int, requested: int):
        super().__init__(
            "Not enough gifts available",
            details={"available": available, "requested": requested},
        )


class WalletLockedError(BusinessLogicError):
    code = "WALLET_LOCKED"

    def __init__(self):
        super().__init__("Wallet is locked", status_code=409)


class InvalidPaymentStatusError(BusinessLogicError):
    code = "INVALID_PAYMENT_STATUS"

    def __init__(self):
        super().__init__("Can only refund successful payments")


class PaymentProviderError(BusinessLogicError):
    code = "PAYMENT_PROVIDER_ERROR"

    def __init__(self, message: str, provider_message: str):
        super().__init__(message, details={"provider_error": provider_message})


# System Errors
class DatabaseError(BaseAPIException):
    """Database operation failed"""
    code = "DATABASE_ERROR"

    def __init__(self, message: str = "Database operation failed"):
        super().__init__(message, status_code=500)


class RateLimitExceededError(BaseAPIException):
    """Rate limit exceeded"""
    code = "RATE_LIMIT_EXCEEDED"

    def __init__(
        self,
        message: str = "Rate limit exceeded. Please try again later.",
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, status_code=429, details=details)


class MonthlyLimitExceededError(RateLimitExceededError):
    code = "MONTHLY_LIMIT_EXCEEDED"

    def __init__(self, limit: int, used: int, reset_date: str):
        super().__init__(
            "Monthly request limit exceeded",
            details={"limit": limit, "used": used, "reset_date": reset_date},
        )
