class StarlightError(Exception):
    """Base class for all errors raised by this library"""


class ConfigurationError(StarlightError, ValueError):
    """The requested crop type is not supported by the requested render type"""


class FetchError(StarlightError):
    """A render could not be downloaded or decoded

    Parameters
    ----------
    url: str
        The render URL which failed
    reason: str
        Short description of what went wrong
    """
    def __init__(self, url: str, reason: str):
        super().__init__(f"Failed to fetch render from {url}: {reason}")
        self.url = url
        self.reason = reason
