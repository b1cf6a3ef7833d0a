"""
Utilidades para manejo de fechas del registro DGI.

El registro publica las fechas en varios formatos (ISO con hora, DD/MM/YYYY,
DD-MM-YYYY); las sesiones de compras guardan solo la fecha en ISO.
"""

import re
from datetime import date
from typing import Optional


_ISO_PREFIX = re.compile(r"^(\d{4})-(\d{2})-(\d{2})")
_DMY = re.compile(r"^(\d{1,2})[/\-](\d{1,2})[/\-](\d{4})")


class DateHelper:
    """Clase estática con utilidades de fecha."""

    @staticmethod
    def normalize_date(value: Optional[str]) -> str:
        """
        Normaliza una fecha del registro a YYYY-MM-DD.

        Formatos reconocidos:
        - YYYY-MM-DD (con o sin hora y zona): se toma la parte de fecha
        - DD/MM/YYYY y DD-MM-YYYY (formato panameño)

        Cualquier otro texto se retorna sin cambios (recortado).

        Ejemplo:
            >>> DateHelper.normalize_date("2024-03-15T10:30:00-05:00")
            '2024-03-15'
            >>> DateHelper.normalize_date("5/3/2024")
            '2024-03-05'
        """
        if not value:
            return ""

        text = value.strip()

        if _ISO_PREFIX.match(text):
            return text[:10]

        match = _DMY.match(text)
        if match:
            day, month, year = match.groups()
            return f"{year}-{month.zfill(2)}-{day.zfill(2)}"

        return text

    @staticmethod
    def today_iso() -> str:
        """Fecha de hoy en YYYY-MM-DD."""
        return date.today().isoformat()

