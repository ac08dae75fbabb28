"""Email validation with a known top-level-domain check."""

import re

VALID_TLDS = {
    # Generic
    "com", "org", "net", "edu", "gov", "mil", "int", "info", "biz", "name", "pro",
    # Country codes (common ones)
    "uk", "us", "ca", "au", "de", "fr", "it", "es", "nl", "be", "ch", "at", "se", "no",
    "dk", "fi", "pl", "cz", "ie", "pt", "jp", "cn", "kr", "in", "sg", "my", "nz", "za",
    "br", "mx", "ar", "ae", "il", "tr", "ma", "tn", "ru", "ua",
    # Newer gTLDs
    "io", "co", "ai", "app", "dev", "tech", "online", "site", "xyz", "me",
    # Academic
    "ac", "sch",
}

EMAIL_PATTERN = re.compile(r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$")


def validate_email_format(email: str) -> str:
    """Return an error message for an invalid address, or an empty string."""
    if not email:
        return "Email address is required."

    email = email.strip().lower()
    if len(email) > 255:
        return "Email address is too long."
    if not EMAIL_PATTERN.match(email):
        return "Please enter a valid email address format."

    local_part, domain = email.split("@", 1)
    if not local_part or len(local_part) > 64:
        return "Invalid email address format."

    tld = domain.rsplit(".", 1)[-1]
    if tld not in VALID_TLDS:
        return f"'{tld}' is not recognized as a valid top-level domain."
    return ""


def normalize_email(email: str) -> str:
    """Pydantic-friendly validator: lower-cases the address or raises ValueError."""
    error = validate_email_format(email)
    if error:
        raise ValueError(error)
    return email.strip().lower()
