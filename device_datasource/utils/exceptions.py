class DataSourceError(Exception):
    """
    Base class for every error raised by the data source core.
    """


class ConfigError(DataSourceError):
    """
    Raised when the configuration is missing or invalid.
    """


class NoDataError(DataSourceError):
    """
    Raised when a backend response carries no frames. The query is not retried.
    """


class MalformedFrameError(DataSourceError):
    """
    Raised when a frame's data block does not line up with its schema.
    """


class MalformedCoercionError(DataSourceError):
    """
    Raised when a cell of a "number" field cannot be parsed as a base-10 integer.
    """

    def __init__(self, field: str, row: int, value) -> None:
        self.field = field
        self.row = row
        self.value = value
        super().__init__(f"Field '{field}' row {row}: cannot parse {value!r} as an integer")


class TransportError(DataSourceError):
    """
    Raised when the transport fails or the backend reports an error for a query.
    """


class NormalizationError(DataSourceError):
    """
    Raised when query normalization does not reach a fixed point.
    """
