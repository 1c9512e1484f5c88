# ledger/errors.py
from django.core.exceptions import ValidationError


class StateConflict(ValidationError):
    """
    The request is well-formed but the current ledger state forbids it
    (not assigned today, already completed, insufficient balance, ...).
    Carries a stable `code` the views echo back to the client.
    """


def error_code(exc: ValidationError) -> str:
    code = getattr(exc, "code", None)
    if code:
        return code
    for err in getattr(exc, "error_list", []) or []:
        if getattr(err, "code", None):
            return err.code
    return "invalid"


def error_message(exc: ValidationError) -> str:
    msgs = getattr(exc, "messages", None)
    return msgs[0] if msgs else str(exc)
