"""
Link errors - what can go wrong between host and board.

Soft conditions (SoftTimeout, Cancelled, NotConnected) are absorbed by the
layer closest to them. The rest end up in the log sink as '!' lines.
"""


class LinkError(Exception):
    """Base class for all serial link errors"""
    pass


class ConnectFailure(LinkError):
    """Raised when the device could not be opened"""
    pass


class NotConnected(LinkError):
    """Raised when an operation needs an open session and there is none"""
    pass


class SoftTimeout(LinkError):
    """Raised when a read deadline elapses before a full line arrived"""
    pass


class Cancelled(LinkError):
    """Raised when a cancel token fires during a blocking operation"""
    pass


class WriteFailure(LinkError):
    """Raised when the channel aborts a write"""
    pass


class ReadFailure(LinkError):
    """Raised when the channel fails a raw read"""
    pass


class EncodingFailure(LinkError):
    """Raised when a command contains characters outside 7-bit ASCII"""
    pass


class FrameTooLong(LinkError):
    """Raised when too many bytes arrive without a line terminator"""

    def __init__(self, limit: int):
        super().__init__(f"No line terminator within {limit} bytes")
        self.limit = limit
