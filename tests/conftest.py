"""Fixtures compartidos: bancos de preguntas escritos en tmp_path."""

import json
import os
import random
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

import pytest

os.environ.setdefault("LOG_TO_FILE", "false")
os.environ.setdefault("LOG_LEVEL", "WARNING")

from quizbank.services.catalog_loader import CatalogService  # noqa: E402
from quizbank.services.quiz_session import QuizSessionService  # noqa: E402
from quizbank.schemas.quiz import SessionState  # noqa: E402


def make_question(
    question: str,
    answer: Any,
    choices: Optional[List[Any]] = None,
    difficulty: Optional[str] = None,
    **extra: Any,
) -> Dict[str, Any]:
    entry: Dict[str, Any] = {
        "question": question,
        "choices": choices if choices is not None else [
            {"key": "A", "text": "Alpha"},
            {"key": "B", "text": "Bravo"},
            {"key": "C", "text": "Charlie"},
            {"key": "D", "text": "Delta"},
        ],
        "answer": answer,
    }
    if difficulty is not None:
        entry["difficulty"] = difficulty
    entry.update(extra)
    return entry


def make_exam(exam: Dict[str, Any], questions: List[Dict[str, Any]]) -> Dict[str, Any]:
    return {"exam": exam, "questions": questions}


@pytest.fixture
def write_exam(tmp_path: Path) -> Callable[[str, Any], Path]:
    bank = tmp_path / "bank"
    bank.mkdir(exist_ok=True)

    def _write(file_name: str, payload: Any) -> Path:
        path = bank / file_name
        if isinstance(payload, str):
            path.write_text(payload, encoding="utf-8")
        else:
            path.write_text(json.dumps(payload, ensure_ascii=False), encoding="utf-8")
        return path

    return _write


@pytest.fixture
def bank_dir(write_exam: Callable[[str, Any], Path]) -> Path:
    """Banco con tres exámenes válidos en dos categorías."""
    write_exam("mixed.json", make_exam(
        {"id": "mixed", "title": "Mixed Difficulty", "description": "Cloud Practitioner drills",
         "version": "2", "category": {"id": "cloud", "name": "Cloud"}},
        [
            make_question("Easy one", "A", difficulty="easy", id="mixed-1"),
            make_question("Easy two", "B", difficulty="easy", id="mixed-2"),
            make_question("Easy three", "C", difficulty="beginner", id="mixed-3"),
            make_question("Normal one", ["A", "C"], id="mixed-4"),
            make_question("Normal two", "D", difficulty="standard", id="mixed-5"),
            make_question("Hard one", "B, D", difficulty="難しい", id="mixed-6"),
        ],
    ))
    write_exam("networking.json", make_exam(
        {"id": "networking", "title": "Advanced Networking", "category": {"id": "cloud", "name": "Cloud"}},
        [
            make_question("VPC question", "A", id="net-1"),
            make_question("Subnet question", "B", id="net-2"),
        ],
    ))
    write_exam("security.json", make_exam(
        {"id": "security", "title": "Security Basics", "category": "Security"},
        [
            make_question("Least privilege", "A", difficulty="easy", id="sec-1"),
            make_question("Hashing", "C", difficulty="easy", id="sec-2"),
        ],
    ))
    return write_exam("placeholder.txt", "not an exam").parent


@pytest.fixture
def catalog_service(bank_dir: Path) -> CatalogService:
    return CatalogService(bank_dir)


@pytest.fixture
def quiz_service(catalog_service: CatalogService) -> QuizSessionService:
    return QuizSessionService(catalog_service, rng=random.Random(1234))


@pytest.fixture
def state() -> SessionState:
    return SessionState()
