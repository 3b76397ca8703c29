"""Service-level exceptions."""


class ConfigurationError(RuntimeError):
    """Required settings are missing; the process must not start."""

    def __init__(self, missing: list[str]):
        self.missing = missing
        super().__init__(f"Missing required configuration: {', '.join(missing)}")


class StoreError(RuntimeError):
    """A GraphQL or database store call failed."""

    def __init__(self, message: str, status_code: int | None = None, errors: list | None = None):
        self.status_code = status_code
        self.errors = errors or []
        super().__init__(message)


class UpdateNotFound(LookupError):
    """The content store returned no live update for the id."""

    def __init__(self, update_id: str):
        self.update_id = update_id
        super().__init__(f"Did not find live update {update_id}")
