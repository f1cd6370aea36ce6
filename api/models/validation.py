"""
Declarative field checks for `Model`, run before any storage call.
"""

from __future__ import annotations

from collections.abc import Callable

from email_validator import EmailNotValidError, validate_email
from pydantic import BaseModel

from .schemas import ValidationError


def _required(value: object) -> bool:
    return value not in ("", None)


def _email(value: object) -> bool:
    if not isinstance(value, str):
        return False
    try:
        validate_email(value, check_deliverability=False)
    except EmailNotValidError:
        return False
    return True


CHECKS: dict[str, Callable[[object], bool]] = {
    "required": _required,
    "email": _email,
}

# field name -> tags, checked in order; the first failing tag is reported.
RULES: dict[str, tuple[str, ...]] = {
    "email": ("required", "email"),
}


def _namespace(model: BaseModel, field_name: str) -> str:
    go_style = "".join(part.capitalize() for part in field_name.split("_"))
    return f"{type(model).__name__}.{go_style}"


def validate_struct(model: BaseModel) -> list[ValidationError]:
    """
    Return one error per violated field constraint; empty means valid.
    """
    errors: list[ValidationError] = []
    for field_name in type(model).model_fields:
        tags = RULES.get(field_name)
        if not tags:
            continue
        value = getattr(model, field_name)
        for tag in tags:
            if CHECKS[tag](value):
                continue
            errors.append(
                ValidationError(
                    failed_field=_namespace(model, field_name),
                    tag=tag,
                    value="" if tag == "required" else str(value),
                )
            )
            break
    return errors


def is_zero(model: BaseModel) -> bool:
    """
    True when every field still holds its default value.
    """
    for field_name, info in type(model).model_fields.items():
        if getattr(model, field_name) != info.get_default(call_default_factory=True):
            return False
    return True
