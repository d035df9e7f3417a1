"""Bot error types"""


class BotError(Exception):
    """Base class for errors raised while handling a conversation turn"""


class StoreError(BotError):
    """A database read or write failed"""

    def __init__(self, operation: str, reason: str):
        super().__init__(f"{operation}: {reason}")
        self.operation = operation
        self.reason = reason


class StaleSessionError(BotError):
    """The session row changed between read and conditional write"""

    def __init__(self, psid: str, expected_version: int):
        super().__init__(f"session {psid} is no longer at version {expected_version}")
        self.psid = psid
        self.expected_version = expected_version


class OrderFailed(BotError):
    """The order or its items could not be written"""

    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason
