"""
Athlete CSV Import/Export

Accepted headers are normalized (lowercase, no accents, no spaces), so
"Fecha Nacimiento" and "fechanacimiento" are the same column.
"""
import csv
import io
import re
import unicodedata
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Dict, Iterable, List, Optional

from email_validator import validate_email, EmailNotValidError

TEMPLATE_HEADERS = ["Nombre", "Apellido", "Email", "Fecha Nacimiento", "Nivel", "Grupo (opcional)"]

DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")

EXPORT_HEADERS = ["Nombre", "Email", "Fecha Nacimiento", "Nivel", "Estado", "Grupo"]


@dataclass
class AthleteRow:
    name: str
    email: Optional[str] = None
    birth_date: Optional[date] = None
    level: Optional[str] = None
    group_name: Optional[str] = None


@dataclass
class ParseResult:
    data: List[AthleteRow] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)
    total_rows: int = 0

    @property
    def success(self) -> bool:
        return not self.errors


def normalize_header(header: str) -> str:
    decomposed = unicodedata.normalize("NFD", header.strip().lower())
    without_accents = "".join(c for c in decomposed if unicodedata.category(c) != "Mn")
    return re.sub(r"\s+", "", without_accents)


def _pick(row: Dict[str, str], *keys: str) -> Optional[str]:
    for key in keys:
        value = row.get(key)
        if value and value.strip():
            return value.strip()
    return None


def parse_athletes_csv(content: str) -> ParseResult:
    """Validate every row; rows with errors are reported, not imported."""
    result = ParseResult()
    reader = csv.DictReader(io.StringIO(content.lstrip("\ufeff")))
    if reader.fieldnames is None:
        result.errors.append("El archivo está vacío")
        return result

    reader.fieldnames = [normalize_header(h or "") for h in reader.fieldnames]

    for index, raw in enumerate(reader):
        result.total_rows += 1
        # +2: header is line 1
        line = index + 2
        row = {k: (v or "") for k, v in raw.items() if k}

        first_name = _pick(row, "nombre")
        if not first_name:
            result.errors.append(f"Fila {line}: el nombre es obligatorio")
            continue

        last_name = _pick(row, "apellido", "apellidos")
        name = f"{first_name} {last_name}" if last_name else first_name

        email = _pick(row, "email", "correo")
        if email:
            try:
                email = validate_email(email, check_deliverability=False).normalized.lower()
            except EmailNotValidError:
                result.errors.append(f"Fila {line}: email inválido ({email})")
                continue

        birth_date = None
        raw_date = _pick(row, "fechanacimiento", "fecha_nacimiento", "fecha")
        if raw_date:
            if not DATE_PATTERN.match(raw_date):
                result.errors.append(f"Fila {line}: fecha inválida ({raw_date}), usa YYYY-MM-DD")
                continue
            try:
                birth_date = datetime.strptime(raw_date, "%Y-%m-%d").date()
            except ValueError:
                result.errors.append(f"Fila {line}: fecha inválida ({raw_date})")
                continue

        result.data.append(AthleteRow(
            name=name,
            email=email,
            birth_date=birth_date,
            level=_pick(row, "nivel"),
            group_name=_pick(row, "grupo(opcional)", "grupo"),
        ))

    return result


def template_csv() -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer)
    writer.writerow(TEMPLATE_HEADERS)
    writer.writerow(["Lucía", "García", "lucia.garcia@correo.es", "2012-05-14", "Nivel 3", ""])
    return buffer.getvalue()


def export_athletes_csv(rows: Iterable[Dict[str, Any]]) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer)
    writer.writerow(EXPORT_HEADERS)
    for row in rows:
        writer.writerow([
            row.get("name") or "",
            row.get("email") or "",
            row["birth_date"].isoformat() if row.get("birth_date") else "",
            row.get("level") or "",
            row.get("status") or "",
            row.get("group") or "",
        ])
    return buffer.getvalue()
