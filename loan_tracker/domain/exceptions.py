"""Domain-specific exceptions"""


class DomainException(Exception):
    """Base exception for domain layer"""

    pass


class ValidationError(DomainException):
    """Input rejected before any state was changed"""

    pass


class LoanNotFoundError(DomainException):
    """Referenced loan does not exist"""

    def __init__(self, loan_id: str):
        super().__init__(f"Loan {loan_id} not found")
        self.loan_id = loan_id


class StorageUnavailableError(DomainException):
    """Storage backend could not be reached or failed mid-operation"""

    pass
