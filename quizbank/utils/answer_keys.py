# quizbank/utils/answer_keys.py
import re
from typing import Any, List, Sequence

from quizbank.utils.text import scalar_text

_SEPARATOR_RE = re.compile(r"[\s,]+")


def extract_answer_key_candidates(value: Any) -> List[str]:
    """
    Extrae claves candidatas desde un valor arbitrario.

    Acepta una secuencia de escalares o un escalar único. Cada candidato que
    contiene espacios o comas se divide en varios ("A, B" -> ["A", "B"]).
    Los tipos no soportados devuelven una lista vacía.
    """
    if value is None:
        return []

    if isinstance(value, (list, tuple)):
        raw_values = [
            scalar_text(entry)
            for entry in value
            if not isinstance(entry, (dict, list, tuple))
        ]
    elif isinstance(value, bool):
        return []
    elif isinstance(value, (str, int, float)):
        raw_values = [scalar_text(value)]
    else:
        return []

    candidates: List[str] = []
    for raw in raw_values:
        raw = raw.strip()
        if not raw:
            continue
        parts = [part for part in _SEPARATOR_RE.split(raw) if part.strip()]
        if len(parts) <= 1:
            candidates.append(raw)
            continue
        candidates.extend(part.strip() for part in parts)

    return candidates


def normalize_answer_keys(value: Any, valid_keys: Sequence[str]) -> List[str]:
    """
    Devuelve el subconjunto de `valid_keys` presente en `value`.

    El orden resultante es siempre el de `valid_keys` (orden de las opciones),
    nunca el de la entrada, y sin duplicados. Así la comparación de respuestas
    es reproducible entre el catálogo, el envío del usuario y el historial.
    """
    if not valid_keys:
        return []

    candidates = set(extract_answer_key_candidates(value))
    if not candidates:
        return []

    normalized: List[str] = []
    for key in valid_keys:
        if key in candidates and key not in normalized:
            normalized.append(key)
    return normalized


def answers_match(correct: Sequence[str], submitted: Sequence[str]) -> bool:
    """Igualdad exacta de conjuntos ordenados; un conjunto correcto vacío nunca coincide."""
    if not correct:
        return False
    return sorted(correct) == sorted(submitted)
