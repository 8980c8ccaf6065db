# quizbank/utils/normalizers.py
import re
import unicodedata
from typing import Any, Dict

DEFAULT_DIFFICULTY = "normal"
DIFFICULTY_RANDOM = "random"
DIFFICULTY_RANDOM_LABEL = "ランダム"

# Etiquetas visibles para el usuario (la interfaz del producto está en japonés)
DIFFICULTY_LEVELS: Dict[str, str] = {
    "easy": "優しい",
    "normal": "普通",
    "hard": "難しい",
}

DIFFICULTY_SYNONYMS: Dict[str, str] = {
    "easy": "easy",
    "e": "easy",
    "beginner": "easy",
    "やさしい": "easy",
    "優しい": "easy",
    "簡単": "easy",
    "normal": "normal",
    "medium": "normal",
    "standard": "normal",
    "regular": "normal",
    "普通": "normal",
    "標準": "normal",
    "hard": "hard",
    "difficult": "hard",
    "challenging": "hard",
    "難しい": "hard",
}

CATEGORY_FALLBACK_ID = "category"

_IDENTIFIER_INVALID_RE = re.compile(r"[^a-zA-Z0-9_-]+")
_UNDERSCORE_RUN_RE = re.compile(r"_+")
_WHITESPACE_RUN_RE = re.compile(r"\s+")


def normalize_category_identifier(label: str) -> str:
    """
    Convierte una etiqueta libre en un identificador tipo slug.

    Nunca falla: cualquier entrada que quede vacía tras la limpieza
    se resuelve como "category".
    """
    normalized = (label or "").strip()
    if not normalized:
        return CATEGORY_FALLBACK_ID

    normalized = _IDENTIFIER_INVALID_RE.sub("_", normalized)
    normalized = normalized.strip("_")
    if not normalized:
        return CATEGORY_FALLBACK_ID
    normalized = _UNDERSCORE_RUN_RE.sub("_", normalized)

    return normalized.lower()


def get_difficulty_options(include_random: bool = False) -> Dict[str, str]:
    """Opciones de dificultad en orden de presentación."""
    options = dict(DIFFICULTY_LEVELS)
    if include_random:
        options[DIFFICULTY_RANDOM] = DIFFICULTY_RANDOM_LABEL
    return options


def difficulty_label(difficulty: str) -> str:
    if difficulty == DIFFICULTY_RANDOM:
        return DIFFICULTY_RANDOM_LABEL
    return DIFFICULTY_LEVELS.get(difficulty, DIFFICULTY_LEVELS[DEFAULT_DIFFICULTY])


def sanitize_difficulty_selection(value: Any) -> str:
    """
    Valida la dificultad elegida en la pantalla de selección.

    Solo acepta las claves canónicas (sin sinónimos); cualquier otro valor
    se interpreta como "random".
    """
    if isinstance(value, str):
        trimmed = value.strip()
        if trimmed and trimmed in get_difficulty_options(include_random=True):
            return trimmed
    return DIFFICULTY_RANDOM


def normalize_difficulty(value: Any) -> str:
    """
    Resuelve la dificultad declarada en un archivo de preguntas.

    Acepta sinónimos en inglés y japonés; los valores desconocidos
    o no textuales caen en "normal".
    """
    if not isinstance(value, str):
        return DEFAULT_DIFFICULTY

    trimmed = value.strip()
    if not trimmed:
        return DEFAULT_DIFFICULTY

    return DIFFICULTY_SYNONYMS.get(trimmed.lower(), DEFAULT_DIFFICULTY)


def normalize_search_text(text: str) -> str:
    """
    Normaliza texto para búsqueda: NFKC (ancho completo/medio), espacios
    colapsados y minúsculas.
    """
    normalized = unicodedata.normalize("NFKC", text or "").strip()
    if not normalized:
        return ""

    normalized = _WHITESPACE_RUN_RE.sub(" ", normalized)
    return normalized.lower()
