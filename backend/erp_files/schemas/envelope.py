from typing import Any, Optional


def envelope(data: Any = None, message: Optional[str] = None, success: bool = True) -> dict:
    """Uniform response wrapper: {success, data?, message?}."""
    body: dict = {"success": success}
    if data is not None:
        body["data"] = data
    if message is not None:
        body["message"] = message
    return body
