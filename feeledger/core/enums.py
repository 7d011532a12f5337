from enum import Enum


class Term(str, Enum):
    TERM1 = "TERM1"
    TERM2 = "TERM2"
    TERM3 = "TERM3"


class FeeFrequency(str, Enum):
    TERMLY = "termly"
    YEARLY = "yearly"
    ONE_TIME = "one_time"


class StudentFeeStatus(str, Enum):
    unpaid = "unpaid"
    partially_paid = "partially_paid"
    paid = "paid"


class PaymentMethod(str, Enum):
    MPESA = "MPESA"
    CASH = "CASH"
    BANK = "BANK"
    CHEQUE = "CHEQUE"


class MpesaTransactionStatus(str, Enum):
    SUCCESS = "SUCCESS"
    PENDING = "PENDING"


class MpesaReviewReason(str, Enum):
    """Why an inbound payment was parked for staff review instead of applied."""

    NO_STUDENT = "NO_STUDENT"
    MULTIPLE_STUDENTS = "MULTIPLE_STUDENTS"
    NO_FEES = "NO_FEES"
    OTHER = "OTHER"


class ChannelPolicy(str, Enum):
    DEDICATED_CATEGORY = "DEDICATED_CATEGORY"
    GENERAL_EXCLUDING = "GENERAL_EXCLUDING"
    FEE_CODE = "FEE_CODE"
