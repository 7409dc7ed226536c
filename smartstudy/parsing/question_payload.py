"""Structured question import (QR code shortcut).

Parses a decoded JSON array of question-like records straight into
Question objects, bypassing image extraction.
"""

import json
import logging
from typing import Any

from smartstudy.errors import ValidationError
from smartstudy.models.domain import Difficulty, Question, QuestionType
from smartstudy.questions.collection import QuestionCollection

logger = logging.getLogger(__name__)

# Constants
MAX_PAYLOAD_SIZE = 256 * 1024  # 256KB
QR_SOURCE = "QR Scan"
DEFAULT_SUBJECT = "General"
_TEXT_KEYS = ("originalText", "original_text", "text", "question")


def _decode_payload(raw: str) -> list[Any]:
    """Decode and validate the outer JSON structure.

    Args:
        raw: Decoded QR text.

    Returns:
        The non-empty list of records.

    Raises:
        ValidationError: If the payload is not a non-empty JSON array.
    """
    if not raw or not raw.strip():
        raise ValidationError("Empty payload provided")

    if len(raw) > MAX_PAYLOAD_SIZE:
        raise ValidationError(f"Payload exceeds maximum allowed size ({MAX_PAYLOAD_SIZE} bytes)")

    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        raise ValidationError(f"Invalid JSON payload: {e}") from e

    if not isinstance(data, list):
        raise ValidationError("Payload must be a JSON array of questions")
    if not data:
        raise ValidationError("Payload contains no questions")
    return data


def _coerce_enum(value: Any, enum_cls: type[QuestionType] | type[Difficulty], default: Any) -> Any:
    """Map a value or name onto an enum member, falling back to default."""
    if isinstance(value, str):
        for member in enum_cls:
            if value.strip().lower() in (member.value.lower(), member.name.lower()):
                return member
    return default


def _coerce_options(value: Any) -> list[str] | None:
    if isinstance(value, list):
        options = [str(v) for v in value if v is not None and str(v).strip()]
        return options or None
    return None


def _normalize_record(index: int, record: Any) -> Question:
    """Turn one loosely-typed record into a Question with defaults filled in.

    Raises:
        ValidationError: If the record is not an object or has no text.
    """
    if not isinstance(record, dict):
        raise ValidationError(f"Item {index + 1} is not a question object")

    text = next(
        (record[k] for k in _TEXT_KEYS if isinstance(record.get(k), str) and record[k].strip()),
        None,
    )
    if text is None:
        raise ValidationError(f"Item {index + 1} has no question text")

    answer = record.get("answer")
    subject = record.get("subject")
    return Question(
        original_text=text.strip(),
        type=_coerce_enum(record.get("type"), QuestionType, QuestionType.UNKNOWN),
        options=_coerce_options(record.get("options")),
        answer=str(answer) if answer not in (None, "") else None,
        subject=subject.strip() if isinstance(subject, str) and subject.strip() else DEFAULT_SUBJECT,
        difficulty=_coerce_enum(record.get("difficulty"), Difficulty, Difficulty.MEDIUM),
        source=QR_SOURCE,
        selected=False,
    )


def parse_question_payload(raw: str) -> list[Question]:
    """Parse a structured question payload.

    Args:
        raw: JSON text, e.g. '[{"originalText": "Q1", "subject": "Math"}]'.

    Returns:
        Questions with fresh ids and defaults for missing fields.

    Raises:
        ValidationError: If the payload is malformed, empty, or any item is invalid.
    """
    records = _decode_payload(raw)
    return [_normalize_record(i, record) for i, record in enumerate(records)]


def import_question_payload(collection: QuestionCollection, raw: str) -> list[Question]:
    """Parse a payload and append it to the collection.

    Nothing is appended unless every item is valid.

    Raises:
        ValidationError: If the payload is rejected.
    """
    questions = parse_question_payload(raw)
    collection.add(questions)
    logger.info(f"Imported {len(questions)} questions from structured payload")
    return questions
