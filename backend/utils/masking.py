"""
Credential masking for display.

Used by every registry provider's mask_configuration() so secrets can be
shown in logs and inspection views without being exposed.
"""

from typing import Optional

MASK_CHAR = '*'


def mask(value: Optional[str]) -> Optional[str]:
    """
    Redact the middle of a secret, keeping its first and last character.

    Args:
        value: Secret to mask (None passes through)

    Returns:
        Masked string of the same length, or None

    Examples:
        "secretaccesskey" → "s*************y"
        "ab" → "**"
    """
    if value is None:
        return None

    value = str(value)
    if len(value) <= 2:
        return MASK_CHAR * len(value)

    return f"{value[0]}{MASK_CHAR * (len(value) - 2)}{value[-1]}"
