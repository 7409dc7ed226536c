"""Prompt text for question extraction and tutoring."""

import json
from collections.abc import Sequence

from smartstudy.models.domain import Question

EXTRACTION_PROMPT = (
    "Analyze this exam image. Extract all distinct questions into a clean database format.\n\n"
    "CRITICAL INSTRUCTIONS:\n"
    "1. GROUP SUB-QUESTIONS: If a question has multiple parts (e.g., 1(a), 1(b), or i, ii, iii), "
    "DO NOT split them. Store the main question and all its sub-parts as a SINGLE "
    "'originalText' entry.\n"
    "2. IGNORE HANDWRITING: The image may contain student answers, circles around options, or "
    "grading marks (ticks/crosses). Do NOT include these in 'originalText' or 'options'. "
    "Extract only the printed question text.\n"
    "3. FORMATTING: Use LaTeX for all math expressions (e.g. $E=mc^2$).\n"
    "4. ANSWERS: If a solution is visible or can be determined, put it in the 'answer' field. "
    "Do not mix answers into the question stem."
)

TUTOR_INSTRUCTIONS = (
    "You are SmartStudy AI, a helpful and encouraging academic tutor. "
    "Help the user understand concepts. "
    "Use LaTeX for all mathematical expressions (e.g. $x^2$)."
)


def build_tutor_instructions(context: Sequence[Question], use_knowledge_base: bool) -> str:
    """Return the tutor system prompt, with the question bank when enabled."""
    if not use_knowledge_base or not context:
        return TUTOR_INSTRUCTIONS

    context_json = json.dumps(
        [
            {"question": q.original_text, "options": q.options, "answer": q.answer}
            for q in context
        ],
        ensure_ascii=False,
    )
    return (
        f"{TUTOR_INSTRUCTIONS}\n\n"
        "KNOWLEDGE BASE CONTEXT: The user has uploaded the following questions. "
        "Refer to them if the user asks about specific problems from their list:\n"
        f"{context_json}"
    )


def build_study_guide_prompt(questions: Sequence[Question]) -> str:
    """Ask for answers and step-by-step explanations of the given questions."""
    header = (
        f"Please generate a detailed Q&A study guide for the following {len(questions)} "
        "questions. For each question, provide the correct answer and a step-by-step "
        "explanation.\n\n"
    )
    items = []
    for i, q in enumerate(questions, start=1):
        item = f"Q{i}: {q.original_text}"
        if q.options:
            item += f"\nOptions: {', '.join(q.options)}"
        items.append(item)
    return header + "\n\n".join(items)
