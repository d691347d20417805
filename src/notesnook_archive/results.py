"""Structured failure results returned by tool operations."""

from typing import Any

NOT_FOUND = "not_found"
ACCESS_DENIED = "access_denied"
VALIDATION = "validation"
INTERNAL = "internal"


def error_result(error_type: str, message: str) -> dict[str, Any]:
    return {"success": False, "error": message, "error_type": error_type}


def access_denied(notebook: str) -> dict[str, Any]:
    return error_result(ACCESS_DENIED, f'Notebook "{notebook}" is not enabled for agent access.')
