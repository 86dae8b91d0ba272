"""Error taxonomy for the case review pipeline."""


class CaseReviewError(Exception):
    """Base exception for the case review pipeline."""
    pass


class ConfigurationError(CaseReviewError):
    """Missing endpoint or credentials. Aborts a run before any case is processed."""
    pass


class TransportError(CaseReviewError):
    """Network or HTTP failure talking to the LLM or a reference API."""

    def __init__(self, message: str, status_code: int | None = None, body: str | None = None):
        super().__init__(message)
        self.status_code = status_code
        self.body = body

    def __str__(self) -> str:
        message = super().__str__()
        if self.status_code is not None:
            message = f"{message} (status {self.status_code})"
        if self.body:
            message = f"{message}: {self.body[:500]}"
        return message


class EmptyResponseError(CaseReviewError):
    """The completion endpoint returned no content."""
    pass


class UnparsableResponse(CaseReviewError):
    """No JSON object could be extracted from the LLM output."""

    def __init__(self, message: str, raw_text: str):
        super().__init__(message)
        self.raw_text = raw_text


class ResponseValidationError(CaseReviewError):
    """Parsed LLM output does not satisfy its schema."""

    def __init__(self, message: str, errors: list[str] | None = None, data: dict | None = None):
        super().__init__(message)
        self.errors = errors or []
        self.data = data


class MissingRequiredField(CaseReviewError):
    """The input case lacks an identifying field."""

    def __init__(self, field: str, case_number: str | None = None):
        where = f" on case {case_number}" if case_number else ""
        super().__init__(f"Missing required field '{field}'{where}")
        self.field = field
        self.case_number = case_number


class CaseNotFound(CaseReviewError):
    """Requested case number is not present in the case source."""

    def __init__(self, case_number: str):
        super().__init__(f"Case not found: {case_number}")
        self.case_number = case_number


class AnalysisFailed(CaseReviewError):
    """An analyzer could not produce a result."""

    def __init__(self, analyzer: str, cause: Exception):
        super().__init__(f"{analyzer} failed: {cause}")
        self.analyzer = analyzer
        self.cause = cause


class ValidationWarning(UserWarning):
    """Parseable but semantically inconsistent LLM output."""
    pass
