from enum import Enum


class EmailKind(Enum):
    ORDER_CONFIRMATION = "order_confirmation"
    PAYMENT_SUCCESSFUL = "payment_successful"
    PAYMENT_FAILED = "payment_failed"
