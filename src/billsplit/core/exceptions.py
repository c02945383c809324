class ExtractionError(Exception):
    """Receipt extraction failed; no bill was produced."""


class ExtractionConfigError(ExtractionError):
    """The extraction model cannot be used (missing credentials, unknown model)."""


class ExtractionServiceError(ExtractionError):
    """The model call itself failed: network error or non-2xx response."""


class ExtractionParseError(ExtractionError):
    """The model answered, but not with a usable bill payload."""

    NO_JSON_OBJECT = "no_json_object"
    INVALID_JSON = "invalid_json"
    SCHEMA_MISMATCH = "schema_mismatch"

    def __init__(self, reason: str, message: str):
        super().__init__(message)
        self.reason = reason
