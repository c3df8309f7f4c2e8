"""Load initiative batches from JSON, YAML or XLSX files.

All numeric coercion happens here, before the pipeline: blank or non-numeric
amounts become 0. Tier and category strings are matched case-insensitively;
anything outside the closed sets raises :class:`InvalidTierError`.
"""
from __future__ import annotations

import json
import logging
import re
import zipfile
from pathlib import Path
from typing import Any

import openpyxl
import yaml
from openpyxl.utils.exceptions import InvalidFileException

from roicanvas.models import BusinessContext, EffortLevel, RawInitiative, RiskLevel, UseCaseType
from roicanvas.utils import InvalidTierError, coerce_number, coerce_text, parse_enum

log = logging.getLogger(__name__)

__all__ = [
    "InvalidTierError",
    "load_batch",
    "load_context",
    "load_initiatives",
    "parse_context",
    "parse_initiative",
]

_CAMEL_RE = re.compile(r"(?<=[a-z0-9])(?=[A-Z])")
_NON_WORD_RE = re.compile(r"[^a-z0-9]+")

# Alternate column names seen in spreadsheets and older exports.
_KEY_ALIASES = {
    "use_case_name": "name",
    "use_case": "name",
    "category": "type",
    "automation_or_augmentation": "type",
    "effort_level": "effort",
    "risk_level": "risk",
    "dependency": "dependencies",
    "designed_by": "author_name",
    "author": "author_name",
    "designed_for": "industry",
}

_CONTEXT_FIELDS = ("author_name", "industry", "objective", "kpis", "constraints", "date", "version")


def _normalize_key(key: object) -> str:
    """``benefitLow`` / ``Benefit Low`` / ``benefit-low`` -> ``benefit_low``."""
    text = _CAMEL_RE.sub("_", coerce_text(key))
    norm = _NON_WORD_RE.sub("_", text.lower()).strip("_")
    return _KEY_ALIASES.get(norm, norm)


def _normalize(record: dict[str, Any]) -> dict[str, Any]:
    return {_normalize_key(k): v for k, v in record.items() if k is not None}


# ---------------------------------------------------------------------------
# Record parsers
# ---------------------------------------------------------------------------


def parse_initiative(record: dict[str, Any], index: int = 0) -> RawInitiative:
    """Build a :class:`RawInitiative` from one loosely-keyed record."""
    data = _normalize(record)
    effort = data.get("effort") or EffortLevel.LOW
    risk = data.get("risk") or RiskLevel.LOW
    kind = data.get("type") or UseCaseType.AUTOMATION
    return RawInitiative(
        id=coerce_text(data.get("id")) or f"uc-{index}",
        name=coerce_text(data.get("name")),
        problem=coerce_text(data.get("problem")),
        kpi=coerce_text(data.get("kpi")),
        benefit_low=coerce_number(data.get("benefit_low")),
        benefit_high=coerce_number(data.get("benefit_high")),
        cost_low=coerce_number(data.get("cost_low")),
        cost_high=coerce_number(data.get("cost_high")),
        effort=parse_enum(EffortLevel, effort, "effort"),
        risk=parse_enum(RiskLevel, risk, "risk"),
        dependencies=coerce_text(data.get("dependencies")),
        type=parse_enum(UseCaseType, kind, "type"),
    )


def parse_context(record: dict[str, Any] | None) -> BusinessContext:
    data = _normalize(record or {})
    values = {f: coerce_text(data[f]) for f in _CONTEXT_FIELDS if data.get(f) is not None}
    return BusinessContext(**values)


# ---------------------------------------------------------------------------
# File loaders
# ---------------------------------------------------------------------------


def _load_mapping(path: Path) -> dict[str, Any]:
    text = path.read_text(encoding="utf-8")
    try:
        data = json.loads(text) if path.suffix.lower() == ".json" else yaml.safe_load(text)
    except (ValueError, yaml.YAMLError) as exc:
        raise ValueError(f"{path.name}: not a readable batch file ({exc})") from exc
    if isinstance(data, list):
        return {"use_cases": data}
    if not isinstance(data, dict):
        raise ValueError(f"{path.name}: expected a mapping or a list of use cases")
    return _normalize(data)


def _sheet_rows(ws) -> list[dict[str, Any]]:
    rows = ws.iter_rows(values_only=True)
    header = next(rows, None)
    if not header:
        return []
    keys = [coerce_text(h) for h in header]
    records = []
    for row in rows:
        if not row or all(cell is None or coerce_text(cell) == "" for cell in row):
            continue
        records.append({k: row[i] if i < len(row) else None for i, k in enumerate(keys) if k})
    return records


def _load_workbook(path: Path) -> dict[str, Any]:
    try:
        wb = openpyxl.load_workbook(path, read_only=True, data_only=True)
    except (zipfile.BadZipFile, InvalidFileException, KeyError) as exc:
        raise ValueError(f"{path.name}: not a readable .xlsx workbook ({exc})") from exc
    try:
        sheets = {name.lower(): wb[name] for name in wb.sheetnames}
        uc_sheet = sheets.get("usecases") or sheets.get("use_cases") or wb[wb.sheetnames[0]]
        use_cases = _sheet_rows(uc_sheet)
        context: dict[str, Any] = {}
        ctx_sheet = sheets.get("context")
        if ctx_sheet is not None:
            for row in ctx_sheet.iter_rows(values_only=True):
                if row and len(row) >= 2 and row[0]:
                    context[coerce_text(row[0])] = row[1]
    finally:
        wb.close()
    return {"context": context, "use_cases": use_cases}


def _load(path: str | Path) -> dict[str, Any]:
    path = Path(path)
    suffix = path.suffix.lower()
    if suffix == ".xlsx":
        return _load_workbook(path)
    if suffix in (".json", ".yaml", ".yml"):
        return _load_mapping(path)
    raise ValueError(f"Unsupported file type {suffix!r} (use .json, .yaml, .yml or .xlsx)")


def load_batch(path: str | Path) -> tuple[BusinessContext, list[RawInitiative]]:
    """Read the business context and every use case from one file."""
    data = _load(path)
    records = data.get("use_cases") or []
    initiatives = [parse_initiative(r, idx) for idx, r in enumerate(records)]
    log.info("Loaded %d use cases from %s", len(initiatives), Path(path).name)
    return parse_context(data.get("context")), initiatives


def load_initiatives(path: str | Path) -> list[RawInitiative]:
    return load_batch(path)[1]


def load_context(path: str | Path) -> BusinessContext:
    return load_batch(path)[0]
