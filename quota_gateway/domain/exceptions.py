"""Domain-specific exceptions"""


class DomainException(Exception):
    """Base exception for domain layer"""

    pass


class InvalidPriceError(DomainException, ValueError):
    """Price is negative or otherwise not priceable"""

    pass


class InvalidTierConfigurationError(DomainException):
    """Quota tiers do not partition the price axis"""

    pass


class InvalidCreditAmountError(DomainException, ValueError):
    """Credits to debit must be a positive integer"""

    pass


class PackageNotFoundError(DomainException):
    """Transaction package does not exist"""

    pass


class PackageInactiveError(DomainException):
    """Transaction package is no longer offered"""

    pass


class PackageInUseError(DomainException):
    """Package is referenced by a subscription and can no longer change"""

    pass


class MerchantNotFoundError(DomainException):
    pass


class BuyerNotFoundError(DomainException):
    pass


class OrderNotFoundError(DomainException):
    pass


class InvalidOrderStateError(DomainException):
    """COD order already reached a terminal state"""

    pass


class CODIneligibleError(DomainException):
    """COD was requested but the order failed the eligibility rules"""

    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason


class QuotaExhaustedError(DomainException):
    """Merchant has no active subscription with enough credits"""

    def __init__(self, merchant_id: str, credits: int):
        super().__init__(f"Merchant {merchant_id} cannot cover {credits} credit(s)")
        self.merchant_id = merchant_id
        self.credits = credits
