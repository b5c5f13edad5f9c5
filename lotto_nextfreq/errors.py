"""Exception taxonomy for snapshot lookups and analysis requests."""


class LottoAnalysisError(Exception):
    """Base class for all analysis errors."""


class NotFound(LottoAnalysisError, LookupError):
    """A round required by an operation is absent from the snapshot."""

    def __init__(self, round_no: int, message: str | None = None):
        self.round = round_no
        super().__init__(message or f"Round {round_no} not found in snapshot")


class InvalidArgument(LottoAnalysisError, ValueError):
    """A caller-supplied argument failed validation."""

    def __init__(self, message: str, field: str | None = None):
        self.field = field
        self.message = message
        super().__init__(f"{field}: {message}" if field else message)


class UnknownBucketKey(InvalidArgument):
    """A range condition references a bucket the active unit size does not produce."""

    def __init__(self, key: str, unit_size: int, field: str | None = "ranges"):
        self.key = key
        self.unit_size = unit_size
        super().__init__(f"Unknown range key {key!r} for unit size {unit_size}", field=field)
