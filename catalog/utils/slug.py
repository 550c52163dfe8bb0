"""Slug generation utility"""
import re
import unicodedata

from catalog.core.exceptions import ValidationError, ValidationReason

MIN_NAME_LENGTH = 2
MAX_NAME_LENGTH = 50


def slugify(text: str) -> str:
    """
    Convert a display name to a URL-safe slug.

    For example: "Solid State Drives & NVMe" -> "solid-state-drives-nvme"

    Args:
        text: The name to convert

    Returns:
        Lowercase ASCII slug, possibly empty if the name has no usable characters
    """
    if not text:
        return ""

    # Fold accented characters to their ASCII base
    normalized = unicodedata.normalize("NFKD", text)
    ascii_text = normalized.encode("ascii", "ignore").decode("ascii")

    slug = re.sub(r"[^a-z0-9]+", "-", ascii_text.lower())
    return slug.strip("-")


def validate_name(name: str) -> str:
    """
    Validate a category name and return its slug.

    Raises:
        ValidationError: if the name length is out of range or yields an empty slug
    """
    stripped = (name or "").strip()
    if not MIN_NAME_LENGTH <= len(stripped) <= MAX_NAME_LENGTH:
        raise ValidationError(
            f"Category name must be between {MIN_NAME_LENGTH} and {MAX_NAME_LENGTH} characters",
            reason=ValidationReason.INVALID_NAME,
        )

    slug = slugify(stripped)
    if not slug:
        raise ValidationError(
            f"Category name '{name}' does not produce a usable slug",
            reason=ValidationReason.INVALID_NAME,
        )
    return slug
