from typing import Optional


class LinkStoreError(Exception):
    """Base class for every failure a persistence backend can report."""


class LoadError(LinkStoreError):
    pass


class DeserializationError(LoadError):
    """The durable copy exists but could not be decoded."""


class WriteError(LinkStoreError):
    pass


class NotFoundError(LinkStoreError):
    def __init__(self, link_id: str):
        super().__init__(f"Link {link_id} not found")
        self.link_id = link_id


class NetworkError(LinkStoreError):
    """The request never produced an HTTP response (DNS, refused, reset...)."""


class HTTPError(LinkStoreError):
    def __init__(self, status_code: int, detail: Optional[str] = None):
        message = f"HTTP {status_code}"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)
        self.status_code = status_code
        self.detail = detail


class ValidationError(LinkStoreError):
    """A required field is missing or a payload has the wrong shape."""
