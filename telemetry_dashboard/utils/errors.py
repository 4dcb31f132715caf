"""
Error types and helpers for consistent error message extraction.
"""


class StoreError(Exception):
    """Raised by key-value stores when a read or write cannot complete."""

    def __init__(self, key: str, message: str) -> None:
        super().__init__(f"{key}: {message}")
        self.key = key


def get_error_message(error: BaseException | object) -> str:
    """
    Safely extract an error message from an unknown error type.
    """
    if isinstance(error, Exception):
        return str(error) or type(error).__name__
    return "Unknown error"
