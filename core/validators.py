"""
Completion submission validators.

Pure functions: each check returns a ValidationResult and never raises, so
the caller can run all of them and report every failure at once.
"""
import re
from dataclasses import dataclass
from typing import List, Optional

from core.config_manager import config

SCRIPT_TAG_PATTERN = re.compile(
    r"<script\b[^<]*(?:(?!</script>)<[^<]*)*</script>",
    re.IGNORECASE,
)
GITHUB_URL_PATTERN = re.compile(r"^https://(github\.com|gist\.github\.com)/.+")


@dataclass
class ValidationResult:
    valid: bool
    error: Optional[str] = None


def validate_code(code: str) -> ValidationResult:
    """Validate a code submission."""
    trimmed = (code or "").strip()

    if not trimmed:
        return ValidationResult(False, "Code cannot be empty")

    if len(trimmed) < config.CODE_MIN_LENGTH:
        return ValidationResult(
            False,
            f"Code must be at least {config.CODE_MIN_LENGTH} characters. "
            "Share a meaningful code snippet.",
        )

    if len(trimmed) > config.CODE_MAX_LENGTH:
        return ValidationResult(
            False,
            f"Code is too long. Maximum {config.CODE_MAX_LENGTH:,} characters.",
        )

    return ValidationResult(True)


def validate_learning_notes(notes: str) -> ValidationResult:
    """Validate a learning notes submission."""
    trimmed = (notes or "").strip()

    if not trimmed:
        return ValidationResult(False, "Learning notes cannot be empty")

    if len(trimmed) < config.NOTES_MIN_LENGTH:
        return ValidationResult(
            False,
            f"Learning notes must be at least {config.NOTES_MIN_LENGTH} characters. "
            "Share what you learned!",
        )

    if len(trimmed) > config.NOTES_MAX_LENGTH:
        return ValidationResult(
            False,
            f"Learning notes are too long. Maximum {config.NOTES_MAX_LENGTH:,} characters.",
        )

    return ValidationResult(True)


def validate_github_url(url: str) -> ValidationResult:
    if not GITHUB_URL_PATTERN.match(url or ""):
        return ValidationResult(
            False,
            "Invalid GitHub URL. Must be from github.com or gist.github.com",
        )
    return ValidationResult(True)


def sanitize_code(code: str) -> str:
    """Strip inline script blocks and surrounding whitespace."""
    return SCRIPT_TAG_PATTERN.sub("", code or "").strip()


def sanitize_learning_notes(notes: str) -> str:
    return (notes or "").strip()


def validate_submission(
    code: str,
    learning_notes: str,
    github_url: Optional[str] = None,
) -> List[str]:
    """
    Run every applicable check and return the failure messages.

    An empty list means the submission is acceptable.
    """
    results = [validate_code(code), validate_learning_notes(learning_notes)]
    if github_url:
        results.append(validate_github_url(github_url))
    return [r.error for r in results if not r.valid and r.error]
