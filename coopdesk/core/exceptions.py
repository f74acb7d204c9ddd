"""Payroll reconciliation errors.

Services raise these before mutating anything, so a caught error always means
the store is unchanged. The API layer maps them onto HTTP status codes.
"""


class PayrollError(Exception):
    """Base class for payroll cycle errors."""
    code = "payroll_error"


class InvalidPeriod(PayrollError):
    """Period string is not a valid YYYY-MM month."""
    code = "invalid_period"

    def __init__(self, period):
        self.period = period
        super().__init__(f"Invalid period '{period}'. Expected YYYY-MM.")


class CycleAlreadyExists(PayrollError):
    """A payroll cycle already exists for the period."""
    code = "cycle_already_exists"

    def __init__(self, period: str):
        self.period = period
        super().__init__(f"Payroll cycle for {period} already exists")


class CycleNotFound(PayrollError):
    code = "cycle_not_found"

    def __init__(self, cycle_id):
        self.cycle_id = cycle_id
        super().__init__(f"Payroll cycle {cycle_id} not found")


class LineNotFound(PayrollError):
    code = "line_not_found"

    def __init__(self, line_id):
        self.line_id = line_id
        super().__init__(f"Payroll line {line_id} not found")


class CycleNotEditable(PayrollError):
    """The cycle has left DRAFT; lines and confirmation are frozen."""
    code = "cycle_not_editable"

    def __init__(self, cycle_id, status):
        self.cycle_id = cycle_id
        self.status = status
        super().__init__(f"Payroll cycle {cycle_id} is {status}, expected draft")


class CycleNotConfirmed(PayrollError):
    """Posting requires a finance-confirmed cycle."""
    code = "cycle_not_confirmed"

    def __init__(self, cycle_id, status):
        self.cycle_id = cycle_id
        self.status = status
        super().__init__(f"Payroll cycle {cycle_id} is {status}, expected finance_confirmed")


class ValidationError(PayrollError):
    code = "validation_error"


class PostingError(PayrollError):
    """Posting failed part-way; the transaction was rolled back."""
    code = "posting_error"
