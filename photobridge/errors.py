class PhotoBridgeError(Exception):
    """
    Base class for every error raised by photobridge.
    """


class ValidationError(PhotoBridgeError, ValueError):
    """
    A required input is missing or invalid. Raised before any network call.
    """


class TransientNetworkError(PhotoBridgeError):
    """
    Network failure, 5xx or 429 that was still failing after every retry.
    """

    def __init__(self, message: str, status_code: int = None):
        super().__init__(message)
        self.status_code = status_code


class RemoteRejection(PhotoBridgeError):
    """
    The remote API refused the request with a non-retryable status (4xx other than 429).
    """

    def __init__(self, message: str, status_code: int = None, body: str = ""):
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class CredentialAcquisitionError(PhotoBridgeError):
    pass


class FetchError(PhotoBridgeError):
    """
    A paginated listing could not be read to the end.
    """


class AlbumNotFoundError(PhotoBridgeError):
    def __init__(self, title: str):
        super().__init__(f"Album '{title}' not found in Google Photos")
        self.title = title
