"""Turn submitted form data into validated schema instances."""
from typing import Dict, Mapping, Optional, Tuple, Type, TypeVar

from pydantic import BaseModel, ValidationError

FormModel = TypeVar("FormModel", bound=BaseModel)


def _error_message(error: dict) -> str:
    message = error.get("msg", "Invalid value")
    # Custom validators raise ValueError, which pydantic prefixes
    if message.startswith("Value error, "):
        message = message[len("Value error, "):]
    return message


def parse_form(model_cls: Type[FormModel], form: Mapping) -> Tuple[Optional[FormModel], Dict[str, str]]:
    """Validate ``form`` against ``model_cls``.

    Returns ``(instance, {})`` on success, or ``(None, errors)`` where
    ``errors`` maps each failing field to its first error message.
    """
    data = {
        name: form.get(name)
        for name in model_cls.model_fields
        if isinstance(form.get(name), str)
    }
    try:
        return model_cls(**data), {}
    except ValidationError as e:
        errors: Dict[str, str] = {}
        for error in e.errors():
            field = str(error["loc"][0]) if error["loc"] else "form"
            errors.setdefault(field, _error_message(error))
        return None, errors
