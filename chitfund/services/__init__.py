"""Services for recording contributions and deriving fund balances.

``ledger`` holds the pure balance engine; the other modules load records
through a SQLAlchemy session and call into it.
"""

from chitfund.services.balance_service import BalanceService
from chitfund.services.enrollment_service import EnrollmentService
from chitfund.services.payment_service import PaymentService
from chitfund.services.summary_service import SummaryService

__all__ = ["BalanceService", "EnrollmentService", "PaymentService", "SummaryService"]
