# quizbank/utils/explanations.py
from typing import Any, Mapping, Optional

from quizbank.schemas.catalog import Explanation
from quizbank.utils.text import scalar_text


def _text(value: Any) -> str:
    return scalar_text(value).strip()


def _first_present(value: Mapping[str, Any], *keys: str) -> Optional[Any]:
    for key in keys:
        if value.get(key) is not None:
            return value[key]
    return None


def normalize_explanation(value: Any) -> Explanation:
    """
    Unifica las distintas representaciones de una explicación.

    - None -> explicación vacía
    - str -> solo texto
    - dict -> text|description, reference|url|link, reference_label|label

    Cualquier otro tipo produce una explicación vacía; nunca lanza excepciones.
    """
    if value is None:
        return Explanation()

    if isinstance(value, str):
        return Explanation(text=value.strip())

    if not isinstance(value, Mapping):
        return Explanation()

    return Explanation(
        text=_text(_first_present(value, "text", "description")),
        reference=_text(_first_present(value, "reference", "url", "link")),
        reference_label=_text(_first_present(value, "reference_label", "label")),
    )


def has_explanation_content(explanation: Explanation) -> bool:
    return bool(
        explanation.text.strip()
        or explanation.reference.strip()
        or explanation.reference_label.strip()
    )
