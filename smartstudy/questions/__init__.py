"""Question bank shared by ingestion, chat context and exam building."""

from smartstudy.questions.collection import ExamSelection, QuestionCollection

__all__ = ["ExamSelection", "QuestionCollection"]
