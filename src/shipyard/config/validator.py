"""Validation helpers for Shipyard workspace configuration."""

from pydantic import ValidationError as PydanticValidationError


def flatten_pydantic_errors(exc: PydanticValidationError) -> list[str]:
    """Flatten a Pydantic ValidationError into human-readable messages.

    Args:
        exc: Pydantic ValidationError exception

    Returns:
        One message per field error, e.g.
        ``"Field 'stages.prod.change_detection': Input should be 'content' or
        'revision'"``
    """
    errors: list[str] = []

    for error in exc.errors():
        loc = error.get("loc", ())
        field_path = ".".join(str(item) for item in loc) if loc else "<root>"
        msg = error.get("msg", "Unknown error")

        if error.get("type") == "value_error":
            errors.append(
                f"Field '{field_path}': {msg} (received: {error.get('input')!r})"
            )
        else:
            errors.append(f"Field '{field_path}': {msg}")

    return errors or ["Validation failed with unknown error"]
