import json
import re
import threading
import time
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union

from quizbank.core.logging_config import get_catalog_logger, log_catalog_load
from quizbank.schemas.catalog import (
    Category, CategoryRef, Choice, Exam, ExamCatalog, ExamMeta, Explanation, Question
)
from quizbank.utils.answer_keys import normalize_answer_keys
from quizbank.utils.explanations import normalize_explanation
from quizbank.utils.normalizers import normalize_category_identifier, normalize_difficulty
from quizbank.utils.text import scalar_text

logger = get_catalog_logger()

DEFAULT_CATEGORY = CategoryRef(id="uncategorized", name="その他")
MIN_CHOICES = 2

_NATURAL_CHUNK_RE = re.compile(r"(\d+)")


def _natural_sort_key(name: str) -> List[Union[int, str]]:
    return [int(chunk) if chunk.isdigit() else chunk for chunk in _NATURAL_CHUNK_RE.split(name)]


def _non_empty_str(value: Any) -> str:
    return value if isinstance(value, str) and value != "" else ""


def normalize_category(value: Any) -> CategoryRef:
    """
    Resuelve la categoría declarada por un examen.

    - None / cadena vacía -> categoría por defecto ("uncategorized" / "その他")
    - str -> id derivado del nombre
    - dict -> `id` explícito (normalizado) o derivado de name|title|label
    """
    if value is None:
        return DEFAULT_CATEGORY

    if isinstance(value, str):
        name = value.strip()
        if not name:
            return DEFAULT_CATEGORY
        return CategoryRef(id=normalize_category_identifier(name), name=name)

    if not isinstance(value, Mapping):
        return DEFAULT_CATEGORY

    category_id = value["id"].strip() if isinstance(value.get("id"), str) else ""
    name = ""
    for alias in ("name", "title", "label"):
        if isinstance(value.get(alias), str):
            name = value[alias].strip()
            break

    if not name and category_id:
        name = category_id

    if category_id:
        category_id = normalize_category_identifier(category_id)
    elif name:
        category_id = normalize_category_identifier(name)

    if not category_id or not name:
        return DEFAULT_CATEGORY

    return CategoryRef(id=category_id, name=name)


def _read_exam_file(path: Path, errors: List[str]) -> Optional[Dict[str, Any]]:
    """
    Lee y decodifica un archivo de examen.
    Devuelve None (registrando el diagnóstico) si el archivo no es utilizable.
    """
    file_name = path.name
    try:
        raw = path.read_bytes()
    except OSError as e:
        detail = e.strerror or str(e)
        errors.append(f"{file_name} を読み取れませんでした。（詳細: {detail}）")
        return None

    try:
        data = json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        errors.append(f"{file_name} のJSON形式が不正です。（詳細: {e}）")
        return None

    if not isinstance(data, (dict, list)):
        errors.append(f"{file_name} のJSON形式が不正です。配列として読み取れません。")
        return None

    if not isinstance(data, dict) or not isinstance(data.get("exam"), dict):
        errors.append(f"{file_name} に exam セクションが見つかりません。")
        return None

    if not isinstance(data.get("questions"), list):
        errors.append(f"{file_name} に questions セクションが見つかりません。")
        return None

    return data


def _legacy_choice_explanation(raw_choice: Mapping[str, Any]) -> Optional[Dict[str, Any]]:
    if all(raw_choice.get(field) is None for field in ("reference", "reference_label", "detail")):
        return None
    return {
        "text": raw_choice.get("detail") or "",
        "reference": raw_choice.get("reference") or "",
        "reference_label": raw_choice.get("reference_label") or "",
    }


def _build_choices(raw_choices: List[Any], choice_explanations: Dict[str, Explanation]) -> List[Choice]:
    """
    Construye las opciones en el orden del archivo.

    Las claves ausentes se asignan como A, B, C... según el número de opciones
    aceptadas; las colisiones reciben un sufijo numérico (A2, A3...).
    Las opciones sin texto se descartan.
    """
    choices: List[Choice] = []
    seen_keys = set()

    for raw_choice in raw_choices:
        if isinstance(raw_choice, Mapping):
            key = scalar_text(raw_choice.get("key"))
            text = scalar_text(raw_choice.get("text"))
            explanation_raw = raw_choice.get("explanation")
            if explanation_raw is None:
                explanation_raw = _legacy_choice_explanation(raw_choice)
        else:
            key = ""
            text = scalar_text(raw_choice)
            explanation_raw = None

        if key == "":
            key = chr(ord("A") + len(choices))

        text = text.strip()
        if not text:
            continue

        base_key = key
        suffix = 1
        while key in seen_keys:
            suffix += 1
            key = f"{base_key}{suffix}"
        seen_keys.add(key)

        if explanation_raw is not None:
            explanation = normalize_explanation(explanation_raw)
        else:
            explanation = choice_explanations.get(key, Explanation())

        choices.append(Choice(key=key, text=text, explanation=explanation))

    return choices


def _build_question(raw_question: Any, question_id: str) -> Tuple[Optional[Question], str]:
    """
    Valida una entrada de pregunta.
    Devuelve (None, id) cuando la pregunta debe descartarse.
    """
    if not isinstance(raw_question, Mapping):
        return None, question_id

    if _non_empty_str(raw_question.get("id")):
        question_id = raw_question["id"]

    question_text = scalar_text(raw_question.get("question")).strip()
    raw_choices = raw_question.get("choices")
    raw_answer = raw_question.get("answers")
    if raw_answer is None:
        raw_answer = raw_question.get("answer")

    choice_explanations: Dict[str, Explanation] = {}
    if isinstance(raw_question.get("choice_explanations"), Mapping):
        for choice_key, explanation_data in raw_question["choice_explanations"].items():
            choice_explanations[str(choice_key)] = normalize_explanation(explanation_data)

    if (
        not question_text
        or not isinstance(raw_choices, list)
        or not raw_choices
        or raw_answer is None
        or raw_answer == ""
    ):
        return None, question_id

    choices = _build_choices(raw_choices, choice_explanations)
    if len(choices) < MIN_CHOICES:
        return None, question_id

    answers = normalize_answer_keys(raw_answer, [choice.key for choice in choices])
    if not answers:
        return None, question_id

    question = Question(
        id=question_id,
        question=question_text,
        choices=choices,
        answers=answers,
        explanation=normalize_explanation(raw_question.get("explanation")),
        difficulty=normalize_difficulty(raw_question.get("difficulty")),
        is_multiple_answer=len(answers) > 1,
    )
    return question, question_id


def load_exam_catalog(directory: Union[str, Path]) -> ExamCatalog:
    """
    Carga todos los archivos de examen (*.json) de un directorio.

    Los problemas por archivo o por pregunta nunca interrumpen la carga: se
    registran como diagnósticos legibles en `errors` y el archivo afectado
    no aporta nada al catálogo.
    """
    start_time = time.time()
    directory = Path(directory)
    errors: List[str] = []

    if not directory.is_dir():
        errors.append("問題データディレクトリが見つかりません。")
        logger.error(f"Question bank directory not found: {directory}")
        return ExamCatalog(errors=errors)

    files = sorted(directory.glob("*.json"), key=lambda path: _natural_sort_key(path.name))

    exams: Dict[str, Exam] = {}
    categories: Dict[str, Category] = {}

    for path in files:
        file_name = path.name
        data = _read_exam_file(path, errors)
        if data is None:
            continue

        exam_data = data["exam"]
        exam_id = _non_empty_str(exam_data.get("id")) or path.stem
        if exam_id in exams:
            errors.append(f"試験ID \"{exam_id}\" が重複しています。（{file_name}）")
            continue

        title = _non_empty_str(exam_data.get("title")) or exam_id
        description = exam_data["description"] if isinstance(exam_data.get("description"), str) else ""
        version = exam_data["version"] if isinstance(exam_data.get("version"), str) else ""
        category = normalize_category(exam_data.get("category"))

        questions: List[Question] = []
        skipped_ids: List[str] = []
        for index, raw_question in enumerate(data["questions"], start=1):
            question, question_id = _build_question(raw_question, f"{exam_id}-q{index}")
            if question is None:
                skipped_ids.append(question_id)
                continue
            questions.append(question)

        if skipped_ids:
            errors.append(
                f"{file_name} で {len(skipped_ids)} 問が読み込めませんでした。"
                f"（問題ID: {', '.join(skipped_ids)}）"
            )

        if not questions:
            errors.append(f"{file_name} に有効な問題がありません。")
            continue

        existing = categories.get(category.id)
        if existing is None:
            categories[category.id] = Category(id=category.id, name=category.name)
        elif category.name and existing.name and existing.name != category.name:
            errors.append(f"カテゴリID \"{category.id}\" の表示名が複数定義されています。（{file_name}）")
        elif not existing.name:
            existing.name = category.name

        exams[exam_id] = Exam(
            meta=ExamMeta(
                id=exam_id,
                title=title,
                description=description,
                version=version,
                question_count=len(questions),
                source_file=file_name,
                category=category,
            ),
            questions=questions,
        )

    sorted_exams = dict(sorted(exams.items(), key=lambda item: item[1].meta.title.lower()))

    # Los exam_ids se reconstruyen desde la lista final ordenada
    exam_ids_by_category: Dict[str, List[str]] = {}
    for exam_id, exam in sorted_exams.items():
        exam_ids_by_category.setdefault(exam.meta.category.id, []).append(exam_id)

    for category_id, category in categories.items():
        category.exam_ids = exam_ids_by_category.get(category_id, [])

    visible_categories = [category for category in categories.values() if category.exam_ids]
    visible_categories.sort(key=lambda category: category.name.lower())

    catalog = ExamCatalog(
        exams=sorted_exams,
        categories={category.id: category for category in visible_categories},
        errors=errors,
    )

    for message in errors:
        logger.warning(f"Catalog diagnostic: {message}")
    log_catalog_load(
        logger,
        str(directory),
        exams=len(catalog.exams),
        categories=len(catalog.categories),
        diagnostics=len(errors),
        response_time_ms=int((time.time() - start_time) * 1000),
    )
    return catalog


def exam_ids_for_category(catalog: ExamCatalog, category_id: str) -> List[str]:
    category = catalog.categories.get(category_id)
    if category is None:
        return []
    return [exam_id for exam_id in category.exam_ids if exam_id in catalog.exams]


def question_count_for_exam(exam: Exam) -> int:
    count = exam.meta.question_count or len(exam.questions)
    return max(0, count)


def question_count_for_category(catalog: ExamCatalog, category_id: str) -> int:
    return sum(
        question_count_for_exam(catalog.exams[exam_id])
        for exam_id in exam_ids_for_category(catalog, category_id)
    )


class CatalogService:
    """
    Mantiene el catálogo cargado a nivel de proceso.

    El directorio lo gestiona el operador, así que basta con recargar
    manualmente (`reload`). Las sesiones de quiz guardan su propia copia
    de las preguntas, por lo que una recarga no las afecta.
    """

    def __init__(self, directory: Union[str, Path], cache_enabled: bool = True):
        self.directory = Path(directory)
        self.cache_enabled = cache_enabled
        self._catalog: Optional[ExamCatalog] = None
        self._lock = threading.Lock()

    def get_catalog(self) -> ExamCatalog:
        if not self.cache_enabled:
            return load_exam_catalog(self.directory)

        with self._lock:
            if self._catalog is None:
                self._catalog = load_exam_catalog(self.directory)
            return self._catalog

    def reload(self) -> ExamCatalog:
        logger.info(f"Reloading catalog from {self.directory}")
        with self._lock:
            self._catalog = load_exam_catalog(self.directory)
            return self._catalog
