"""In-memory question bank and exam selection.

The collection is mutated only from the event loop thread, so reads never
need locking; `snapshot()` returns the list as of call time.
"""

import logging
from collections import Counter
from collections.abc import Iterable, Iterator, Sequence

from smartstudy.models.domain import ExamSnapshot, ExtractedQuestion, Question, new_id

logger = logging.getLogger(__name__)


class ExamSelection:
    """Ordered subset of questions chosen for a printable exam."""

    def __init__(self, title: str = "Assessment Worksheet") -> None:
        self.title = title
        self._questions: list[Question] = []

    def __len__(self) -> int:
        return len(self._questions)

    def __contains__(self, question_id: object) -> bool:
        return any(q.id == question_id for q in self._questions)

    def questions(self) -> list[Question]:
        return list(self._questions)

    def add(self, question: Question) -> bool:
        """Add a question unless it is already in the exam."""
        if question.id in self:
            return False
        self._questions.append(question.model_copy())
        return True

    def add_many(self, questions: Iterable[Question]) -> int:
        """Add every question not yet present. Returns how many were added."""
        return sum(1 for q in questions if self.add(q))

    def remove(self, question_id: str) -> bool:
        before = len(self._questions)
        self._questions = [q for q in self._questions if q.id != question_id]
        return len(self._questions) != before

    def replace(self, question: Question) -> None:
        """Refresh the exam's copy of an edited question."""
        self._questions = [
            question.model_copy() if q.id == question.id else q for q in self._questions
        ]

    def reorder(self, question_ids: Sequence[str]) -> None:
        """Put the exam in the given order.

        Raises:
            ValueError: If the ids are not a permutation of the exam's ids.
        """
        by_id = {q.id: q for q in self._questions}
        if len(question_ids) != len(by_id) or set(question_ids) != set(by_id):
            raise ValueError("Order must list every exam question exactly once")
        self._questions = [by_id[qid] for qid in question_ids]

    def snapshot(self) -> ExamSnapshot:
        return ExamSnapshot(
            title=self.title,
            questions=[q.model_copy() for q in self._questions],
        )

    def load(self, snapshot: ExamSnapshot) -> None:
        """Seed the exam from a previously saved snapshot."""
        self.title = snapshot.title
        self._questions = []
        self.add_many(snapshot.questions)


class QuestionCollection:
    """Flat, ordered question bank shared by ingestion and chat.

    Deleting or editing a question is mirrored into the exam selection
    when one is attached.
    """

    def __init__(self, exam: ExamSelection | None = None) -> None:
        self._questions: list[Question] = []
        self.exam = exam

    def __len__(self) -> int:
        return len(self._questions)

    def __iter__(self) -> Iterator[Question]:
        return iter(list(self._questions))

    def snapshot(self) -> list[Question]:
        """Return the questions as they are right now."""
        return list(self._questions)

    def get(self, question_id: str) -> Question | None:
        return next((q for q in self._questions if q.id == question_id), None)

    def add(self, questions: Iterable[Question]) -> list[Question]:
        """Append ready-made questions (manual entry or import)."""
        added = list(questions)
        self._questions.extend(added)
        return added

    def add_extracted(
        self,
        extracted: Iterable[ExtractedQuestion],
        source: str | None = None,
    ) -> list[Question]:
        """Append extraction results with fresh ids, unselected.

        Args:
            extracted: Questions returned by the gateway.
            source: Origin label, usually the uploaded file name.

        Returns:
            The questions as stored in the collection.
        """
        added = [
            Question(
                **item.model_dump(include=set(ExtractedQuestion.model_fields)),
                id=new_id(),
                source=source,
                selected=False,
            )
            for item in extracted
        ]
        self._questions.extend(added)
        if added:
            logger.info(f"Added {len(added)} questions from {source or 'extraction'}")
        return added

    def update(self, question_id: str, **changes: object) -> Question | None:
        """Apply field changes to a question and its exam copy."""
        question = self.get(question_id)
        if question is None:
            return None

        updated = Question.model_validate({**question.model_dump(), **changes})
        self._questions = [updated if q.id == question_id else q for q in self._questions]
        if self.exam is not None:
            self.exam.replace(updated)
        return updated

    def delete(self, question_id: str) -> bool:
        """Remove a question from the bank and from the exam."""
        before = len(self._questions)
        self._questions = [q for q in self._questions if q.id != question_id]
        if self.exam is not None:
            self.exam.remove(question_id)
        return len(self._questions) != before

    def toggle_selection(self, question_id: str) -> Question | None:
        question = self.get(question_id)
        if question is None:
            return None
        question.selected = not question.selected
        return question

    def toggle_all(self) -> bool:
        """Select everything, or clear the selection if all are selected.

        Returns:
            The new selection state.
        """
        select = not all(q.selected for q in self._questions)
        for q in self._questions:
            q.selected = select
        return select

    def selected(self) -> list[Question]:
        return [q for q in self._questions if q.selected]

    def subject_counts(self, limit: int | None = None) -> list[tuple[str, int]]:
        """Question counts per subject, most common first.

        Ties keep the order in which subjects first appear in the bank.
        """
        return Counter(q.subject for q in self._questions).most_common(limit)
