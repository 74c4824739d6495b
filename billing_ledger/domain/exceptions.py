"""Domain-specific exceptions"""

from decimal import Decimal
from typing import Optional


class BillingError(Exception):
    """Base exception for the billing domain"""

    pass


class InvalidScheduleError(BillingError):
    """Contract inputs cannot produce a valid quota schedule"""

    pass


class InvalidPaymentError(BillingError):
    """Payment amount or target is not acceptable"""

    pass


class QuotaOverflowError(BillingError):
    """Attempt to generate a quota beyond the financing's total"""

    def __init__(self, quota_number: int, total_quotas: int):
        super().__init__(f"Quota {quota_number} exceeds total of {total_quotas} quotas")
        self.quota_number = quota_number
        self.total_quotas = total_quotas


class ReconciliationMismatchError(BillingError):
    """Replayed credit disagrees with the stored partial payment credit"""

    def __init__(self, financing_id: Optional[int], stored: Decimal, recomputed: Decimal):
        super().__init__(
            f"Financing {financing_id}: stored credit {stored} != replayed credit {recomputed}"
        )
        self.financing_id = financing_id
        self.stored = stored
        self.recomputed = recomputed


class FinancingNotFoundError(BillingError):
    """Referenced financing does not exist"""

    pass


class NotificationDeliveryError(BillingError):
    """Outbound webhook could not be delivered after all retries"""

    pass
