"""
Indicator vocabulary loader for the RiskCheck service.
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any, Iterable, List, Optional, Tuple

logger = logging.getLogger(__name__)


def load_json(path: Path) -> Any:
    """Load a JSON file with UTF-8 encoding."""
    with path.open("r", encoding="utf-8") as f:
        return json.load(f)


def _dedup_list(values: Iterable[Any]) -> List[Any]:
    seen = set()
    output: List[Any] = []
    for val in values:
        if val in seen:
            continue
        seen.add(val)
        output.append(val)
    return output


def _extract_terms(value: Any) -> List[str]:
    """Accept a list of strings, a list of {"term": ...} dicts, or {"terms": [...]}."""
    if isinstance(value, dict):
        value = value.get("terms", [])
    terms: List[str] = []
    if isinstance(value, list):
        for item in value:
            if isinstance(item, str):
                terms.append(item)
            elif isinstance(item, dict) and isinstance(item.get("term"), str):
                terms.append(item["term"])
    return [term.strip().lower() for term in terms if term and term.strip()]


def load_indicator_terms(path: str | os.PathLike[str]) -> Optional[Tuple[str, ...]]:
    """
    Load a custom fraud indicator vocabulary.

    Returns None when the file is missing, unreadable or holds no terms, so the
    caller keeps the built-in vocabulary.
    """
    data_path = Path(path)
    if not data_path.exists():
        logger.warning("Indicator file %s does not exist; using built-in vocabulary", data_path)
        return None

    try:
        raw = load_json(data_path)
    except (OSError, ValueError) as exc:
        logger.warning("Failed to load indicator file %s: %s", data_path, exc)
        return None

    terms = _dedup_list(_extract_terms(raw))
    if not terms:
        logger.warning("Indicator file %s holds no terms; using built-in vocabulary", data_path)
        return None

    logger.info("Loaded %d indicator terms from %s", len(terms), data_path)
    return tuple(terms)
