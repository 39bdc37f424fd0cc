"""Exceptions raised at the protocol boundary."""


class ProtocolError(Exception):
    """A frame that cannot be acted on: unknown verb, bad arguments, bad room code.

    The message is sent back verbatim as ``error|<message>``.
    """

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


__all__ = ["ProtocolError"]
