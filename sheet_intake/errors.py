"""Terminal validation failures raised while reading an uploaded workbook.

None of these are worth retrying with the same bytes: the remedy is always a
different upload, so every message tells the uploader what to re-export.
"""

from __future__ import annotations


class IntakeError(ValueError):
    """Base class for fatal upload problems surfaced to the uploader."""

    code = "intake_error"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class UnreadableWorkbookError(IntakeError):
    code = "unreadable_workbook"


class EmptyWorkbookError(IntakeError):
    code = "empty_workbook"

    def __init__(self, message: str = "Workbook contains no sheets. Re-export the file and upload it again.") -> None:
        super().__init__(message)


class EmptyFileError(IntakeError):
    code = "empty_file"

    def __init__(self, sheet_name: str | None = None) -> None:
        where = f"Sheet '{sheet_name}'" if sheet_name else "The selected sheet"
        super().__init__(f"{where} has no readable rows. Re-export the file and upload it again.")
        self.sheet_name = sheet_name


class NoHeadersError(IntakeError):
    code = "no_headers"

    def __init__(self, header_row_index: int | None = None) -> None:
        suffix = f" (row {header_row_index + 1})" if header_row_index is not None else ""
        super().__init__(f"No column headers found{suffix}. Make sure the file has a header row.")
        self.header_row_index = header_row_index


class ConfigError(Exception):
    pass
