# quizbank/utils/text.py
import math
from typing import Any


def scalar_text(value: Any) -> str:
    """
    Convierte un escalar de un JSON de origen incierto en texto.

    - None, dict, list, tuple -> ""
    - bool -> "1" / ""
    - float entero -> sin decimales (1.0 -> "1")
    """
    if value is None or isinstance(value, (dict, list, tuple)):
        return ""
    if isinstance(value, bool):
        return "1" if value else ""
    if isinstance(value, float) and math.isfinite(value) and value.is_integer():
        return str(int(value))
    return str(value)
