"""Redaction of secrets in logs and task parameters."""

import json
import re

REDACTED = "[REDACTED]"

# Task types whose parameters carry an auth token
_TOKEN_TASK_TYPES = {"reservebuntzen"}
_TOKEN_KEYS = {"authtoken", "auth_token"}

# Token-looking values in text that is not a JSON object
_TOKEN_IN_TEXT = re.compile(
    r"""(["']?auth_?token["']?\s*[:=]\s*["']?)([^"'\s,;}]*)""",
    re.IGNORECASE,
)


def redact_token(token: str | None) -> str:
    """
    Mask a secret token for safe logging.

    Tokens of 8 characters or fewer are fully hidden; longer tokens keep
    their first and last four characters.
    """
    if not token or len(token) <= 8:
        return REDACTED
    return f"{token[:4]}...{token[-4:]}"


def mask_token_text(text: str) -> str:
    """Redact every `authToken: value` style pair found in free text."""
    return _TOKEN_IN_TEXT.sub(lambda m: f"{m.group(1)}{redact_token(m.group(2))}", text)


def obfuscate_parameters(parameters: str | None, task_type: str) -> str | None:
    """
    Redact the auth token inside serialized task parameters.

    Only task types known to carry tokens are touched. Parameters that are
    not a JSON object are masked textually instead.
    """
    if not parameters or task_type.lower() not in _TOKEN_TASK_TYPES:
        return parameters

    try:
        data = json.loads(parameters)
    except json.JSONDecodeError:
        return mask_token_text(parameters)
    if not isinstance(data, dict):
        return mask_token_text(parameters)

    for key, value in data.items():
        if key.lower() in _TOKEN_KEYS and (value is None or isinstance(value, str)):
            data[key] = redact_token(value)
    return json.dumps(data)
