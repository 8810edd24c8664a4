"""
Validation and normalization for extracted document entities.

Two severity tiers: errors mark an entity as invalid (out-of-range date or
amount, malformed vendor); warnings are non-blocking quality signals (low
confidence, weekend date, round amount). A missing entity is valid.
"""

import math
import re
from datetime import date
from typing import List, Optional

from ledgerlens.models.entities import (
    ConfidenceField,
    CrossValidation,
    EntityValidationResult,
    ExtractedEntities,
    NormalizedEntities,
    ValidationResult,
)
from ledgerlens.models.options import ValidationOptions
from ledgerlens.utils.dates import from_iso
from ledgerlens.utils.money import normalize_amount as _round_amount

INVALID_VENDOR_CHARS = re.compile(r'[<>{}\[\]\\|^~`]')

SUSPICIOUS_VENDOR_PATTERNS = [
    re.compile(r'^test', re.IGNORECASE),
    re.compile(r'^sample', re.IGNORECASE),
    re.compile(r'^example', re.IGNORECASE),
    re.compile(r'^dummy', re.IGNORECASE),
    re.compile(r'^xxx', re.IGNORECASE),
    re.compile(r'^[0-9]+$'),
]

PRESERVED_ABBREVIATIONS = {'inc', 'llc', 'ltd', 'corp', 'co', 'plc', 'usa', 'uk', 'llp'}

NO_DESCRIPTION = 'No description available'


def _result(errors: List[str], warnings: List[str], suggestions: List[str], strict: bool) -> EntityValidationResult:
    is_valid = not errors and not (strict and warnings)
    return EntityValidationResult(
        is_valid=is_valid,
        errors=errors,
        warnings=warnings,
        suggestions=suggestions or None,
    )


def _confidence_warning(label: str, field: ConfidenceField, min_confidence: float) -> Optional[str]:
    if field.confidence < min_confidence:
        return f"{label} confidence ({field.confidence * 100:.0f}%) is below threshold"
    return None


def validate_date(
    field: Optional[ConfidenceField],
    options: Optional[ValidationOptions] = None
) -> EntityValidationResult:
    """
    Validate a date entity.

    Args:
        field: Extracted date (ISO string value) or None
        options: Validation bounds

    Returns:
        EntityValidationResult
    """
    options = options or ValidationOptions()
    errors, warnings, suggestions = [], [], []

    if field is None:
        return EntityValidationResult()

    low = _confidence_warning('Date', field, options.min_confidence)
    if low:
        warnings.append(low)

    value = from_iso(str(field.value))
    if value is None:
        errors.append(f"Invalid date format: {field.value}")
        return EntityValidationResult(is_valid=False, errors=errors, warnings=warnings)

    min_date, max_date = options.date_bounds()
    today = date.today()

    if value > max_date:
        errors.append(f"Date is in the future: {field.value}")
        suggestions.append("Consider using today's date or a past date")

    if value < min_date:
        errors.append(f"Date is too old: {field.value}")
        years = round((today - min_date).days / 365)
        suggestions.append(f"Date should be within the last {years} years")

    if today.year - value.year > 10:
        warnings.append("Date is more than 10 years old")

    if value.weekday() >= 5:
        warnings.append("Transaction date is on a weekend")

    return _result(errors, warnings, suggestions, options.strict)


def validate_amount(
    field: Optional[ConfidenceField],
    options: Optional[ValidationOptions] = None
) -> EntityValidationResult:
    """Validate an amount entity against the configured range."""
    options = options or ValidationOptions()
    errors, warnings, suggestions = [], [], []

    if field is None:
        return EntityValidationResult()

    low = _confidence_warning('Amount', field, options.min_confidence)
    if low:
        warnings.append(low)

    try:
        value = float(field.value)
    except (TypeError, ValueError):
        value = math.nan

    if not math.isfinite(value):
        errors.append("Invalid amount value")
        return EntityValidationResult(is_valid=False, errors=errors, warnings=warnings)

    if value < options.min_amount:
        errors.append(f"Amount ${value:.2f} is below minimum (${options.min_amount})")

    if value > options.max_amount:
        errors.append(f"Amount ${value:.2f} exceeds maximum (${options.max_amount:,.0f})")
        suggestions.append("Verify this is not a misread value (e.g., extra digits)")

    if value > 100 and value % 100 == 0:
        warnings.append(f"Amount is a round number (${value:.2f})")

    # OCR confusion between lowercase l and 1 in the matched text
    source = field.source or ''
    if '1' in source and 'l' in source:
        warnings.append("Amount may contain OCR errors (l vs 1)")

    decimals = repr(value).split('.')[1] if '.' in repr(value) else ''
    if 'e' not in decimals and len(decimals) > 2:
        warnings.append("Amount has more than 2 decimal places")
        suggestions.append(f"Consider rounding to 2 decimal places: ${value:.2f}")

    return _result(errors, warnings, suggestions, options.strict)


def validate_vendor(
    field: Optional[ConfidenceField],
    options: Optional[ValidationOptions] = None
) -> EntityValidationResult:
    """Validate a vendor entity (length, characters, suspicious names)."""
    options = options or ValidationOptions()
    errors, warnings, suggestions = [], [], []

    if field is None:
        return EntityValidationResult()

    low = _confidence_warning('Vendor', field, options.min_confidence)
    if low:
        warnings.append(low)

    value = str(field.value)

    if len(value) < options.min_vendor_length:
        errors.append(f'Vendor name too short: "{value}"')

    if len(value) > options.max_vendor_length:
        errors.append(f"Vendor name too long: {len(value)} characters")
        suggestions.append(f"Consider truncating to {options.max_vendor_length} characters")

    if INVALID_VENDOR_CHARS.search(value):
        warnings.append("Vendor name contains unusual characters")
        suggestions.append(f'Cleaned name: "{INVALID_VENDOR_CHARS.sub("", value)}"')

    if any(p.search(value) for p in SUSPICIOUS_VENDOR_PATTERNS):
        warnings.append("Vendor name matches suspicious pattern")

    if re.match(r'^\d+$', value):
        errors.append(f'Vendor name is all numbers: "{value}"')

    if re.search(r'\s{2,}', value):
        warnings.append("Vendor name has excessive whitespace")
        collapsed = re.sub(r"\s+", " ", value)
        suggestions.append(f'Cleaned name: "{collapsed}"')

    if value != value.strip():
        warnings.append("Vendor name has leading/trailing whitespace")

    return _result(errors, warnings, suggestions, options.strict)


def validate_entities(
    entities: ExtractedEntities,
    options: Optional[ValidationOptions] = None
) -> ValidationResult:
    """Validate all entities plus cross-entity consistency."""
    date_result = validate_date(entities.date, options) if entities.date else None
    amount_result = validate_amount(entities.amount, options) if entities.amount else None
    vendor_result = validate_vendor(entities.vendor, options) if entities.vendor else None

    cross_warnings = []
    if not entities.date and not entities.amount and not entities.vendor:
        cross_warnings.append("No entities were extracted from the document")

    confidences = _confidences(entities)
    if len(confidences) > 1:
        avg = sum(confidences) / len(confidences)
        if min(confidences) < avg * 0.5:
            cross_warnings.append("Entity confidence levels are inconsistent")

    results = [r for r in (date_result, amount_result, vendor_result) if r is not None]
    valid_count = sum(1 for r in results if r.is_valid)
    invalid_count = len(results) - valid_count
    warning_count = sum(len(r.warnings) for r in results) + len(cross_warnings)

    return ValidationResult(
        is_valid=invalid_count == 0,
        valid_count=valid_count,
        invalid_count=invalid_count,
        warning_count=warning_count,
        date=date_result,
        amount=amount_result,
        vendor=vendor_result,
        cross_validation=CrossValidation(errors=[], warnings=cross_warnings),
    )


def _confidences(entities: ExtractedEntities) -> List[float]:
    return [
        f.confidence
        for f in (entities.date, entities.amount, entities.vendor)
        if f is not None
    ]


def normalize_vendor_name(vendor: str) -> str:
    """
    Clean a vendor name for storage.

    Examples:
        >>> normalize_vendor_name("  ACME   widgets inc #123 ")
        'Acme Widgets INC'
    """
    normalized = re.sub(r'\s+', ' ', vendor.strip())
    normalized = INVALID_VENDOR_CHARS.sub('', normalized)
    normalized = re.sub(r'[,;:!]+$', '', normalized)
    # Store numbers
    normalized = re.sub(r'\s*#\d+$', '', normalized)
    normalized = re.sub(r'\s+\d{1,6}$', '', normalized)

    words = []
    for word in normalized.split(' '):
        if word.lower() in PRESERVED_ABBREVIATIONS:
            words.append(word.upper() if len(word) <= 3 else word)
        elif word:
            words.append(word[0].upper() + word[1:].lower())
        else:
            words.append(word)
    return ' '.join(words)


def normalize_amount(amount: float) -> float:
    """Round to exactly 2 decimal places; idempotent."""
    return _round_amount(amount)


def normalize_date(value: str) -> Optional[str]:
    parsed = from_iso(value)
    return parsed.isoformat() if parsed else None


def normalize_entities(
    entities: ExtractedEntities,
    options: Optional[ValidationOptions] = None
) -> NormalizedEntities:
    """Validate, then normalize each entity and compute overall confidence."""
    validation = validate_entities(entities, options)
    confidences = _confidences(entities)
    overall = sum(confidences) / len(confidences) if confidences else 0.0

    return NormalizedEntities(
        date=normalize_date(entities.date.value) if entities.date else None,
        amount=normalize_amount(entities.amount.value) if entities.amount else None,
        vendor=normalize_vendor_name(entities.vendor.value) if entities.vendor else None,
        currency=entities.currency,
        description=entities.description,
        overall_confidence=round(overall, 2),
        validation=validation,
    )


def calculate_quality_score(entities: ExtractedEntities) -> int:
    """
    Score extraction quality from 0 to 100.

    Weights: amount 40, date 30, vendor 20, description 10.
    """
    score = 0
    if entities.date:
        score += round(entities.date.confidence * 30)
    if entities.amount:
        score += round(entities.amount.confidence * 40)
    if entities.vendor:
        score += round(entities.vendor.confidence * 20)
    if entities.description and entities.description != NO_DESCRIPTION:
        score += 10
    return round(score / 100 * 100)


def meets_quality_threshold(entities: ExtractedEntities, threshold: int = 50) -> bool:
    return calculate_quality_score(entities) >= threshold


def get_validation_summary(validation: ValidationResult) -> str:
    """Human-readable summary of validation errors."""
    issues = []
    if validation.date and validation.date.errors:
        issues.append(f"Date: {', '.join(validation.date.errors)}")
    if validation.amount and validation.amount.errors:
        issues.append(f"Amount: {', '.join(validation.amount.errors)}")
    if validation.vendor and validation.vendor.errors:
        issues.append(f"Vendor: {', '.join(validation.vendor.errors)}")
    if validation.cross_validation.errors:
        issues.append(', '.join(validation.cross_validation.errors))

    if not issues:
        return 'All entities validated successfully'
    return '; '.join(issues)
