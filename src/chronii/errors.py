from __future__ import annotations


class ChroniiError(Exception):
    """Base class for errors raised by the data core."""


# PUBLIC_INTERFACE
class NotAuthenticatedError(ChroniiError):
    """A cloud operation was attempted without a signed-in, non-anonymous user."""


class AuthError(ChroniiError):
    """Sign-in, registration or account linking was rejected."""


class AccountExistsError(AuthError):
    """Registration used an email that already has an account."""


class RepositoryError(ChroniiError):
    """Base class for repository contract violations."""


class RepositoryNotInitializedError(RepositoryError):
    """A repository was used before initialize() completed."""


class DuplicateItemError(RepositoryError):
    """add() was called with an id the repository already holds."""

    def __init__(self, item_id: str) -> None:
        super().__init__(f"Item with id {item_id!r} already exists")
        self.item_id = item_id


# PUBLIC_INTERFACE
class StoreError(ChroniiError):
    """
    Transient failure of the underlying local or cloud store (I/O, network).

    Callers processing many items catch this per item and keep going.
    """


class DocumentNotFoundError(StoreError):
    """A document store update targeted a document that does not exist."""

    def __init__(self, path: str, doc_id: str) -> None:
        super().__init__(f"Document {doc_id!r} not found in {path!r}")
        self.path = path
        self.doc_id = doc_id


class ServiceNotInitializedError(ChroniiError):
    """A service was used before initialize() completed."""
