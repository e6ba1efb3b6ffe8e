from __future__ import annotations


class DebtorDiffError(Exception):
    pass


class ConfigurationError(DebtorDiffError):
    pass


class StaleRowHandleError(DebtorDiffError):
    def __init__(self, table: str, row: int, generation: int, current: int) -> None:
        super().__init__(
            f"row {row} of {table} was loaded at generation {generation}, table is at {current}"
        )
        self.table = table
        self.row = row


class WorkbookSaveError(DebtorDiffError):
    pass
