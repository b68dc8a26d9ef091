"""Refuse to send credentials anywhere but an HTTPS endpoint."""

from urllib.parse import urlparse


class InvalidSchemeError(ValueError):
    """Raised when a URL does not use the https scheme."""

    def __init__(self, url: str, scheme: str) -> None:
        super().__init__(
            f"Refusing to call {url!r}: scheme {scheme!r} is not allowed, only 'https' is."
        )
        self.url = url
        self.scheme = scheme


def validate_https_url(url: str) -> str:
    """
    Check that ``url`` uses https and return it unchanged.

    Raises:
        InvalidSchemeError: If the scheme is anything other than https.
    """
    scheme = urlparse(url).scheme
    if scheme.lower() != "https":
        raise InvalidSchemeError(url, scheme)
    return url
