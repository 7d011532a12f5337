from feeledger.auth.models import StaffUser
from feeledger.core.models.class_model import SchoolClass
from feeledger.core.models.student import Guardian, Student, guardian_students
from feeledger.core.models.fee_category import FeeCategory
from feeledger.core.models.class_fee_structure import ClassFeeStructure
from feeledger.core.models.student_fee import StudentFee
from feeledger.core.models.payment import Payment
from feeledger.core.models.mpesa_transaction import MpesaTransaction
from feeledger.core.models.student_phone_alias import StudentPhoneAlias
from feeledger.core.models.fee_audit_log import FeeAuditLog

__all__ = [
    "StaffUser",
    "SchoolClass",
    "Student",
    "Guardian",
    "guardian_students",
    "FeeCategory",
    "ClassFeeStructure",
    "StudentFee",
    "Payment",
    "MpesaTransaction",
    "StudentPhoneAlias",
    "FeeAuditLog",
]
