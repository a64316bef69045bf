from __future__ import annotations

from decimal import Decimal


class ImportaError(Exception):
    """Base class for every typed rejection raised by the import core."""


class NotFoundError(ImportaError, LookupError):
    """Unknown stage or import id (programming error, not a user-facing condition)."""

    def __init__(self, key: str, kind: str = "stage") -> None:
        super().__init__(f"Unknown {kind} id: {key!r}")
        self.key = key
        self.kind = kind


class TransitionError(ImportaError):
    """A pipeline transition is not allowed from the current stage."""

    def __init__(self, message: str, stage_id: str) -> None:
        super().__init__(message)
        self.stage_id = stage_id


class NoNextStageError(TransitionError):
    def __init__(self, stage_id: str) -> None:
        super().__init__(f"Importação já está no último estágio ({stage_id})", stage_id)


class NoPreviousStageError(TransitionError):
    def __init__(self, stage_id: str) -> None:
        super().__init__(f"Importação já está no primeiro estágio ({stage_id})", stage_id)


class ValidationError(ImportaError, ValueError):
    """Bad input rejected before any computation."""


class InvalidRateError(ValidationError):
    pass


class InvalidPercentError(ValidationError):
    pass


class InvalidCostItemError(ValidationError):
    pass


class InvalidStagePatchError(ValidationError):
    pass


class InsufficientCreditError(ImportaError):
    """Financed amount exceeds the credit line's available capacity."""

    def __init__(self, financed_amount: Decimal, available_credit: Decimal) -> None:
        self.financed_amount = financed_amount
        self.available_credit = available_credit
        self.shortfall = financed_amount - available_credit
        super().__init__(
            f"Crédito insuficiente: faltam {self.shortfall:.2f} "
            f"(financiado {financed_amount:.2f}, disponível {available_credit:.2f})"
        )


class ConcurrentUpdateError(ImportaError):
    """The stored pipeline state changed since it was read (stale version)."""

    def __init__(self, import_id: str, expected: int, actual: int) -> None:
        super().__init__(
            f"Pipeline {import_id} foi alterado por outra requisição "
            f"(versão esperada {expected}, atual {actual})"
        )
        self.import_id = import_id
        self.expected = expected
        self.actual = actual


class ArchivedPipelineError(ImportaError):
    """The pipeline was archived and no longer accepts transitions."""

    def __init__(self, import_id: str) -> None:
        super().__init__(f"Importação {import_id} está arquivada e não aceita alterações")
        self.import_id = import_id
