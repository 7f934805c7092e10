"""Error taxonomy shared by the core and the HTTP layer."""


class InputError(ValueError):
    """A request is missing a required field or carries an invalid one."""


class DocumentUnavailable(RuntimeError):
    """The knowledge document could not be loaded or parsed."""


class ServiceUnavailable(RuntimeError):
    """The completion service errored, timed out or returned nothing usable."""


class UpstreamError(RuntimeError):
    """A third-party platform (Braze, Airtable) answered with a failure.

    ``status_code`` is passed through to the HTTP client unchanged.
    """

    def __init__(self, status_code: int, message: str, details=None):
        super().__init__(message)
        self.status_code = status_code
        self.message = message
        self.details = details
