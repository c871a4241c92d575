"""Exception types raised by the variance engine and its collaborators."""


class PriceGuardError(Exception):
    """Base class for all auditor errors."""


class ExtractionFailure(PriceGuardError):
    """Extraction collaborator failed for a single document.

    Never fatal for a batch: the coordinator records it against the
    offending upload and moves on.
    """

    def __init__(self, message: str, provider: str | None = None) -> None:
        super().__init__(message)
        self.provider = provider


class RecordValidationError(PriceGuardError):
    """An extracted record is not fit to be admitted into the ledger.

    Attributes:
        errors: Human-readable description of each failed check
    """

    def __init__(self, errors: list[str]) -> None:
        self.errors = list(errors)
        super().__init__("Invalid document record: " + "; ".join(self.errors))


class PersistenceError(PriceGuardError):
    """Ledger snapshot could not be loaded or saved."""
