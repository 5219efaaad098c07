"""
Errors raised when a report submission is refused.
Every one of them is raised before anything is persisted.
"""


class ReportError(ValueError):
    code = 'REPORT_REJECTED'

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InvalidReportError(ReportError):
    """Malformed input: unknown reason or content type, description too long."""
    code = 'INVALID_REPORT'


class SelfReportError(ReportError):
    code = 'SELF_REPORT'


class DuplicateReportError(ReportError):
    code = 'DUPLICATE_REPORT'
