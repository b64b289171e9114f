from .errors import error_response, LedgerError
from .money import to_minor, to_major, payment_progress, remaining_balance
