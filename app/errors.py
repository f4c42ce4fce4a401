class UpstreamFetchError(Exception):
    """The CRM could not supply any property records."""

    def __init__(self, message: str, status_code: int | None = None, offset: int | None = None, url: str | None = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.offset = offset
        self.url = url


class GeocodingError(Exception):
    """The geocoding service could not be reached or returned garbage."""
