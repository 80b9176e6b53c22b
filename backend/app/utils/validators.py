"""
Validators — Regex rules for Indian health and contact identifiers.
"""
import re


def validate_abha(abha: str | None) -> bool:
    """Validate ABHA number: 14 digits, optionally grouped as 2-4-4-4 (e.g. 91-1234-5678-9012)."""
    if not abha:
        return False
    cleaned = re.sub(r"[\s-]", "", abha)
    return bool(re.match(r"^\d{14}$", cleaned))


def validate_phone(phone: str | None) -> bool:
    """Validate an Indian mobile number: 10 digits starting 6-9, optional +91 prefix."""
    if not phone:
        return False
    cleaned = re.sub(r"[\s-]", "", phone)
    return bool(re.match(r"^(\+91)?[6-9]\d{9}$", cleaned))


def validate_email(email: str | None) -> bool:
    if not email:
        return False
    return bool(re.match(r"^[\w.+-]+@[\w-]+(\.[\w-]+)+$", email.strip()))
