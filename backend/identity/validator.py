"""
Identity Reconciliation - Identifier Validator

Checks a candidate identifier against the external identity provider's
identifier grammar:
- at most 128 characters
- none of the forbidden characters . @ # $ [ ]
- no control characters (U+0000-U+001F, U+007F)
- no zero-width / line-separator / non-character code points

A leading digit and non-Latin letters are allowed by the provider but are
reported as warnings for downstream policy.

Pure and deterministic; no I/O.
"""

from typing import List

from .models import CharsetInfo, ValidationResult

MAX_IDENTIFIER_LENGTH = 128

# Order matters: issues list the characters found in this order
FORBIDDEN_CHARACTERS = (".", "@", "#", "$", "[", "]")

PROBLEMATIC_CODE_POINTS = frozenset(
    [0xFEFF, 0x2028, 0x2029, 0xFFFE, 0xFFFF] + list(range(0x200B, 0x2010))
)

# Histogram buckets used by the format audit
CHARSET_NUMERIC = "numeric"
CHARSET_LOWERCASE = "lowercase"
CHARSET_UPPERCASE = "uppercase"
CHARSET_SPECIAL = "special"
CHARSET_OTHER_SCRIPT = "other_script"
CHARSET_MIXED = "mixed"

CHARSET_BUCKETS = (
    CHARSET_NUMERIC,
    CHARSET_LOWERCASE,
    CHARSET_UPPERCASE,
    CHARSET_SPECIAL,
    CHARSET_OTHER_SCRIPT,
    CHARSET_MIXED,
)


def _is_control(ch: str) -> bool:
    code = ord(ch)
    return code <= 0x1F or code == 0x7F


def _is_ascii_alnum(ch: str) -> bool:
    return ch.isascii() and ch.isalnum()


def _is_other_script(ch: str) -> bool:
    """Letter outside the basic Latin range (CJK, Cyrillic, accented Latin, ...)."""
    return not ch.isascii() and ch.isalpha()


def analyze_charset(candidate: str) -> CharsetInfo:
    """Report which character classes occur in the candidate."""
    special = sorted({
        ch for ch in candidate
        if not _is_ascii_alnum(ch) and not _is_other_script(ch)
    })
    return CharsetInfo(
        has_digits=any("0" <= ch <= "9" for ch in candidate),
        has_lowercase=any("a" <= ch <= "z" for ch in candidate),
        has_uppercase=any("A" <= ch <= "Z" for ch in candidate),
        has_other_script=any(_is_other_script(ch) for ch in candidate),
        has_special=bool(special),
        special_characters=special,
    )


def classify_charset(charset: CharsetInfo) -> str:
    """Map charset flags to exactly one histogram bucket."""
    flags = {
        CHARSET_NUMERIC: charset.has_digits,
        CHARSET_LOWERCASE: charset.has_lowercase,
        CHARSET_UPPERCASE: charset.has_uppercase,
        CHARSET_SPECIAL: charset.has_special,
        CHARSET_OTHER_SCRIPT: charset.has_other_script,
    }
    present = [name for name, on in flags.items() if on]
    if len(present) == 1:
        return present[0]
    return CHARSET_MIXED


def validate_identifier(candidate: str) -> ValidationResult:
    """
    Validate a candidate identifier.

    Failures are reported through ``issues``; this function never raises for
    bad input.

    Args:
        candidate: Identifier to check (employee code, record key, ...)

    Returns:
        ValidationResult with issues, warnings and charset metadata
    """
    candidate = candidate or ""
    issues: List[str] = []
    warnings: List[str] = []

    if not candidate:
        issues.append("identifier is empty")
        return ValidationResult(
            candidate=candidate,
            is_valid=False,
            issues=issues,
            warnings=warnings,
            length=0,
            starts_with_digit=False,
            charset=analyze_charset(candidate),
        )

    length = len(candidate)
    if length > MAX_IDENTIFIER_LENGTH:
        issues.append(f"length {length} exceeds limit of {MAX_IDENTIFIER_LENGTH}")

    found_forbidden = [ch for ch in FORBIDDEN_CHARACTERS if ch in candidate]
    if found_forbidden:
        issues.append(f"contains forbidden characters: {', '.join(found_forbidden)}")

    if any(_is_control(ch) for ch in candidate):
        issues.append("contains control characters")

    if any(ord(ch) in PROBLEMATIC_CODE_POINTS for ch in candidate):
        issues.append("contains problematic Unicode characters")

    charset = analyze_charset(candidate)
    starts_with_digit = "0" <= candidate[0] <= "9"

    if starts_with_digit:
        warnings.append("starts with a digit")
    if charset.has_other_script:
        warnings.append("contains non-Latin script characters")

    return ValidationResult(
        candidate=candidate,
        is_valid=not issues,
        issues=issues,
        warnings=warnings,
        length=length,
        starts_with_digit=starts_with_digit,
        charset=charset,
    )
