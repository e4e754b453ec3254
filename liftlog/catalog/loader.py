import json
from functools import lru_cache
from pathlib import Path

from loguru import logger

from .models import CommonExercise


def _normalize_string_list(values: object) -> tuple[str, ...]:
    if not isinstance(values, list):
        return tuple()
    normalized = [str(item).strip() for item in values if str(item or "").strip()]
    return tuple(normalized)


def _catalog_path() -> Path:
    return Path(__file__).resolve().parent / "common_exercises.jsonl"


def _parse_entry(raw: dict[str, object]) -> CommonExercise | None:
    name = " ".join(str(raw.get("name") or "").split())
    category = str(raw.get("category") or "").strip().lower()
    if not name or not category:
        return None
    aliases = _normalize_string_list(raw.get("aliases"))
    if aliases and name.lower() not in {alias.lower() for alias in aliases}:
        aliases = (name, *aliases)
    return CommonExercise(name=name, category=category, aliases=aliases)


def parse_catalog_lines(lines: list[str] | tuple[str, ...]) -> tuple[CommonExercise, ...]:
    entries: list[CommonExercise] = []
    seen: set[str] = set()
    for number, line in enumerate(lines, start=1):
        raw_line = line.strip()
        if not raw_line:
            continue
        try:
            payload = json.loads(raw_line)
        except json.JSONDecodeError as exc:
            logger.warning(f"common_catalog_line_invalid line={number} error={exc}")
            continue
        if not isinstance(payload, dict):
            continue
        entry = _parse_entry(payload)
        if entry is None:
            logger.warning(f"common_catalog_entry_incomplete line={number}")
            continue
        if entry.name.lower() in seen:
            continue
        seen.add(entry.name.lower())
        entries.append(entry)
    return tuple(entries)


@lru_cache(maxsize=1)
def load_common_catalog() -> tuple[CommonExercise, ...]:
    path = _catalog_path()
    if not path.exists():
        logger.warning(f"common_catalog_missing path={path}")
        return tuple()
    with path.open("r", encoding="utf-8") as handle:
        return parse_catalog_lines(handle.readlines())


__all__ = ["load_common_catalog", "parse_catalog_lines"]
