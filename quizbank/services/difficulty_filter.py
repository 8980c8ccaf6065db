# quizbank/services/difficulty_filter.py
from typing import Dict, List, Sequence

from quizbank.schemas.catalog import Question
from quizbank.utils.normalizers import DEFAULT_DIFFICULTY, DIFFICULTY_LEVELS, DIFFICULTY_RANDOM


def filter_questions_by_difficulty(questions: Sequence[Question], difficulty: str) -> List[Question]:
    """
    Devuelve las preguntas elegibles para la dificultad elegida.
    "random" no filtra nada; el orden relativo siempre se conserva.
    """
    if difficulty == DIFFICULTY_RANDOM:
        return list(questions)

    return [
        question for question in questions
        if (question.difficulty or DEFAULT_DIFFICULTY) == difficulty
    ]


def count_questions_by_difficulty(questions: Sequence[Question]) -> Dict[str, int]:
    counts = {level: 0 for level in DIFFICULTY_LEVELS}
    for question in questions:
        level = question.difficulty or DEFAULT_DIFFICULTY
        counts[level] = counts.get(level, 0) + 1
    counts[DIFFICULTY_RANDOM] = len(questions)
    return counts
