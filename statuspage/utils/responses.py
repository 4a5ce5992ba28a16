# ---
# File: utils/responses.py
# Purpose: The success envelope every JSON route returns:
#          {"success": true, "message"?: str, "data"?: {...}}
# ---

from typing import Any, Optional


def success_response(data: Optional[Any] = None, message: Optional[str] = None) -> dict:
    body = {"success": True}
    if message:
        body["message"] = message
    if data is not None:
        body["data"] = data
    return body
