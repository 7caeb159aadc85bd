"""
StudyHub Backend - Request Validation Rules
===========================================

What:  Declarative, ordered rule-sets for every mutating or id-addressed
       operation, plus the boundary parsers used for query strings and
       loosely-typed body fields.
How:   A Rule pairs one field with one checker function and one message.
       A checker returns the sanitized value (trimmed text, parsed integer,
       normalized email) or raises ValueError/TypeError. RuleSet.validate()
       runs the rules in declaration order and raises the rule's error class
       with the rule's message on the FIRST failure. Nothing is persisted or
       mutated before a rule-set has passed.
Who:   MaterialService, before it touches the store or the user directory.

Rule-sets:
    CREATE_MATERIAL_RULES   POST /api/materials body
    UPDATE_MATERIAL_RULES   PUT/PATCH body (same rules, only for fields present)
    MATERIAL_ID_RULES       {id} path parameter
    MATERIAL_TYPE_RULES     {materialType} path parameter
    UPVOTE_RULES            POST /api/materials/upvote body

Example:
    >>> MATERIAL_ID_RULES.validate({"id": "nope"})
    Traceback (most recent call last):
    ...
    studyhub.exceptions.ValidationError: Invalid material ID
"""

import re
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Mapping, Optional, Sequence, Tuple, Type

from pydantic import EmailStr, HttpUrl, TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from studyhub.exceptions import InvalidAssetLinkError, ValidationError
from studyhub.models.material import VERIFICATION_STATES
from studyhub.schemas.material import MaterialDocument
from studyhub.services.drive_links import extract_file_id

Checker = Callable[[Any], Any]

OBJECT_ID_PATTERN = re.compile(r"^[0-9a-fA-F]{24}$")
INTEGER_PATTERN = re.compile(r"^[+-]?\d+$")

# Bounds of the database integer types. OFFSET is a 64-bit value; the
# semester column is a 32-bit INTEGER on PostgreSQL.
MAX_SQL_BIGINT = 2**63 - 1
MAX_SQL_INTEGER = 2**31 - 1

MIN_YEAR_OF_WRITING = 2000

_http_url = TypeAdapter(HttpUrl)
_email = TypeAdapter(EmailStr)


# ══════════════════════════════════════════════════════════════════════════
# Checkers
# ══════════════════════════════════════════════════════════════════════════


def trimmed_length(min_length: int, max_length: int) -> Checker:
    """Text of min..max characters after trimming surrounding whitespace."""

    def check(value: Any) -> str:
        if not isinstance(value, str):
            raise TypeError("expected text")
        trimmed = value.strip()
        if not min_length <= len(trimmed) <= max_length:
            raise ValueError(f"length {len(trimmed)} outside {min_length}..{max_length}")
        return trimmed

    return check


def text_up_to(max_length: int) -> Checker:
    return trimmed_length(0, max_length)


def integer_between(low: int, high: Callable[[], int]) -> Checker:
    """
    An integer in low..high(). Accepts ints and integral strings/floats,
    rejects booleans. The upper bound is evaluated per call so a year limit
    follows the calendar.
    """

    def check(value: Any) -> int:
        if isinstance(value, bool):
            raise TypeError("booleans are not integers")
        if isinstance(value, int):
            number = value
        elif isinstance(value, float) and value.is_integer():
            number = int(value)
        elif isinstance(value, str) and INTEGER_PATTERN.match(value.strip()):
            number = int(value.strip())
        else:
            raise ValueError("not an integer")
        if not low <= number <= high():
            raise ValueError(f"{number} outside {low}..{high()}")
        return number

    return check


def non_empty_list(value: Any) -> list:
    if not isinstance(value, list) or not value:
        raise ValueError("expected a non-empty list")
    return list(value)


def absolute_url(value: Any) -> str:
    """An absolute http(s) URL. The submitted spelling is kept, only trimmed."""
    if not isinstance(value, str):
        raise TypeError("expected text")
    try:
        _http_url.validate_python(value.strip())
    except PydanticValidationError as exc:
        raise ValueError("not an absolute http(s) URL") from exc
    return value.strip()


def drive_file_link(value: Any) -> str:
    try:
        extract_file_id(value)
    except InvalidAssetLinkError as exc:
        raise ValueError(exc.message) from exc
    return value.strip()


def one_of(*choices: str) -> Checker:
    def check(value: Any) -> str:
        if value not in choices:
            raise ValueError(f"{value!r} not in {choices}")
        return value

    return check


def object_id(value: Any) -> str:
    if not isinstance(value, str) or not OBJECT_ID_PATTERN.match(value):
        raise ValueError("not a 24-character hex identifier")
    return value.lower()


def email_address(value: Any) -> str:
    """A syntactically valid address, normalized to lowercase."""
    if not isinstance(value, str):
        raise TypeError("expected text")
    try:
        normalized = _email.validate_python(value.strip())
    except PydanticValidationError as exc:
        raise ValueError("not an email address") from exc
    return normalized.lower()


def _current_year() -> int:
    return datetime.now(timezone.utc).year


# ══════════════════════════════════════════════════════════════════════════
# Rules & Rule-sets
# ══════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True)
class Rule:
    """
    One constraint on one field.

    optional:  skip the rule when the field is absent or null
    each:      apply the checker to every element of a list value (the
               list-shape rule for the same field reports non-lists)
    error:     exception class raised when the rule fails
    """

    field: str
    check: Checker
    message: str
    optional: bool = False
    each: bool = False
    error: Type[ValidationError] = ValidationError


class RuleSet:
    """An ordered list of rules evaluated against a payload mapping."""

    def __init__(self, name: str, rules: Sequence[Rule]):
        self.name = name
        self.rules: Tuple[Rule, ...] = tuple(rules)

    @property
    def fields(self) -> Tuple[str, ...]:
        return tuple(dict.fromkeys(rule.field for rule in self.rules))

    def validate(self, payload: Mapping[str, Any]) -> Dict[str, Any]:
        """
        Run every rule in order and return the sanitized values of the
        fields that were checked.

        Raises:
            ValidationError (or the rule's subclass) carrying the first
            failing rule's message.
        """
        if not isinstance(payload, Mapping):
            raise ValidationError(message="Request body must be a JSON object")

        cleaned: Dict[str, Any] = {}
        for rule in self.rules:
            value = cleaned.get(rule.field, payload.get(rule.field))
            if value is None and rule.optional:
                continue
            try:
                if rule.each:
                    if not isinstance(value, list):
                        continue
                    cleaned[rule.field] = [rule.check(item) for item in value]
                else:
                    cleaned[rule.field] = rule.check(value)
            except (ValueError, TypeError) as exc:
                raise rule.error(
                    message=rule.message,
                    field=rule.field,
                    context={"rule_set": self.name, "reason": str(exc)},
                ) from exc
        return cleaned

    def partial(self, name: str) -> "RuleSet":
        """Same rules, each one only enforced when its field is supplied."""
        return RuleSet(name, [replace(rule, optional=True) for rule in self.rules])


CREATE_MATERIAL_RULES = RuleSet(
    "create_material",
    [
        Rule("subject", trimmed_length(2, 100), "Subject must be between 2 and 100 characters"),
        Rule("semester", integer_between(1, lambda: 8), "Semester must be between 1 and 8"),
        Rule("instructorName", non_empty_list, "At least one instructor name is required"),
        Rule(
            "instructorName",
            trimmed_length(2, 50),
            "Instructor name must be between 2 and 50 characters",
            each=True,
        ),
        Rule("materialLink", absolute_url, "Material link must be a valid URL"),
        Rule("desc", text_up_to(500), "Description cannot exceed 500 characters", optional=True),
        Rule("author", non_empty_list, "At least one author is required"),
        Rule("author", trimmed_length(2, 50), "Author name must be between 2 and 50 characters", each=True),
        Rule(
            "yearOfWriting",
            integer_between(MIN_YEAR_OF_WRITING, _current_year),
            "Year must be valid",
        ),
        Rule("branch", non_empty_list, "At least one branch is required"),
        Rule("branch", trimmed_length(1, 100), "Branch names must be non-empty text", each=True),
        Rule("materialType", trimmed_length(2, 50), "Material type is required"),
        Rule(
            "thumbnail",
            drive_file_link,
            "Thumbnail must be a valid Google Drive URL",
            error=InvalidAssetLinkError,
        ),
        Rule("courseCode", text_up_to(100), "Course code must be text of at most 100 characters", optional=True),
        Rule("contributedBy", text_up_to(100), "Contributor must be text of at most 100 characters", optional=True),
        Rule(
            "verifiedBy",
            one_of(*VERIFICATION_STATES),
            "Verification status must be 'verified' or 'notVerified'",
            optional=True,
        ),
    ],
)

UPDATE_MATERIAL_RULES = CREATE_MATERIAL_RULES.partial("update_material")

MATERIAL_ID_RULES = RuleSet("material_id", [Rule("id", object_id, "Invalid material ID")])

MATERIAL_TYPE_RULES = RuleSet(
    "material_type",
    [Rule("materialType", trimmed_length(2, 50), "Invalid material type")],
)

UPVOTE_RULES = RuleSet(
    "upvote",
    [
        Rule("materialId", object_id, "Invalid material ID"),
        Rule("email", email_address, "Please provide a valid email"),
    ],
)


# ══════════════════════════════════════════════════════════════════════════
# Boundary Parsers
# ══════════════════════════════════════════════════════════════════════════

_TRUE_WORDS = {"true", "1", "yes", "on"}
_FALSE_WORDS = {"false", "0", "no", "off", ""}


def parse_bool(value: Any, default: bool = False) -> bool:
    """
    Explicit boolean parsing for loosely-typed input.

    Booleans pass through, 1/0 map to True/False, and the words
    true/false/yes/no/on/off (any case) are recognized. Everything else,
    absence included, yields `default`.
    """
    if isinstance(value, bool):
        return value
    if isinstance(value, int) and value in (0, 1):
        return bool(value)
    if isinstance(value, str):
        word = value.strip().lower()
        if word in _TRUE_WORDS:
            return True
        if word in _FALSE_WORDS:
            return False
    return default


def parse_optional_int(value: Any, maximum: int = MAX_SQL_BIGINT) -> Optional[int]:
    """
    Integer value of `value`, or None when absent, not integral, or larger
    in magnitude than `maximum`.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        number = value
    elif isinstance(value, str) and INTEGER_PATTERN.match(value.strip()):
        number = int(value.strip())
    else:
        return None
    if abs(number) > maximum:
        return None
    return number


def parse_positive_int(value: Any, default: int, maximum: Optional[int] = None) -> int:
    """Integer >= 1 parsed from `value`; `default` for absent, garbage, < 1 or > `maximum`."""
    number = parse_optional_int(value)
    if number is None or number < 1 or (maximum is not None and number > maximum):
        return default
    return number


def validate_document(document: Mapping[str, Any]) -> None:
    """
    Re-validate a whole material after a partial update has been merged in.

    Raises:
        ValidationError naming the first invalid field.
    """
    try:
        MaterialDocument.model_validate(dict(document))
    except PydanticValidationError as exc:
        first = exc.errors()[0]
        field = ".".join(str(part) for part in first["loc"])
        raise ValidationError(
            message=f"Invalid value for '{field}': {first['msg']}",
            field=field,
            context={"rule_set": "material_document"},
        ) from exc
