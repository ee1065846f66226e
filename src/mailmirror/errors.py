"""Exception hierarchy for the mirror service."""


class MirrorError(Exception):
    """Base class for errors raised by the mirror core."""


class TransportError(MirrorError):
    """The remote mailbox could not list a page of messages."""

    def __init__(self, user_id: str, message: str) -> None:
        super().__init__(f"transport failure for user {user_id}: {message}")
        self.user_id = user_id


class MessageNotFoundError(MirrorError):
    """A message id is not present in the mirror for the given user."""

    def __init__(self, user_id: str, message_id: str) -> None:
        super().__init__(f"message {message_id} not found for user {user_id}")
        self.user_id = user_id
        self.message_id = message_id
