"""Structured question payload parsing.

Turns externally supplied question data into question-bank entries.

Responsibilities:
    - JSON decoding and shape validation of QR payloads
    - Normalization of missing or unknown fields to defaults
    - All-or-nothing import into the question collection
"""

from smartstudy.parsing.question_payload import import_question_payload, parse_question_payload

__all__ = ["import_question_payload", "parse_question_payload"]
