"""Reference language dataset (All Access CSV export).

The dataset is read once from ``LANGUAGE_DATA_PATH`` and searched in memory.
Project allocations copy their language metadata from it when a grantee
picks a language.
"""

import csv
import io
import logging
import os
import re
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

from dotenv import load_dotenv

load_dotenv()

logger = logging.getLogger(__name__)

LANGUAGE_DATA_PATH = os.getenv(
    "LANGUAGE_DATA_PATH",
    str(Path(__file__).resolve().parents[2] / "data" / "all-access-languages.csv"),
)

DEFAULT_SEARCH_LIMIT = 50

# "Kalamsé [knz]" -> ("Kalamsé", "knz")
_NAME_WITH_CODE = re.compile(r"^(.+?)\s*\[([^\]]+)\]$")

# Fields matched by free-text search
_SEARCH_FIELDS = (
    "name",
    "ethnologue_code",
    "country",
    "all_access_goal",
    "all_access_status",
)


def parse_population(value: Optional[str]) -> Optional[int]:
    """``"1,234"`` -> 1234.  Blank, ``0`` and unreadable values are None."""
    if not value:
        return None
    cleaned = value.replace(",", "").strip()
    if not cleaned or cleaned == "0":
        return None
    try:
        return int(cleaned)
    except ValueError:
        return None


def _flag(value: Optional[str]) -> bool:
    return (value or "").strip().lower() == "yes"


def _row_to_language(row: Dict[str, str]) -> Optional[Dict[str, Any]]:
    raw_name = row.get("Language Name") or ""
    name = raw_name
    code = row.get("Language Code") or ""
    match = _NAME_WITH_CODE.match(raw_name)
    if match:
        name = match.group(1).strip()
        code = match.group(2).strip()
    if not name or not code:
        return None

    population = parse_population(row.get("First Language Population"))
    return {
        "name": name,
        "ethnologue_code": code,
        "country": row.get("Country") or "",
        "country_code": row.get("Country Code") or None,
        "continent": row.get("Continent") or None,
        "speakers": population,
        "all_access_goal": row.get("All Access Goal") or None,
        "eligible_for_eten_funding": _flag(row.get("Eligible for ETEN Funding")),
        "all_access_status": row.get("All Access Status") or None,
        "language_population_group": row.get("Language Population Group") or None,
        "first_language_population": population,
        "egids_group": row.get("EGIDS Group") or None,
        "egids_level": row.get("EGIDS Level") or None,
        "is_sign_language": _flag(row.get("Is Sign Language")),
        "is_iso_recognized": _flag(row.get("Is ISO Recognized")),
        "luminations_region": row.get("IllumiNationsRegion") or None,
    }


def parse_all_access_csv(text: str) -> List[Dict[str, Any]]:
    """Parse an All Access CSV export into language dicts.

    The header may carry a UTF-8 BOM.  Rows whose field count differs from
    the header are skipped, as are rows without a language name or code.
    """
    text = text.lstrip("\ufeff")
    reader = csv.reader(io.StringIO(text))

    headers: Optional[List[str]] = None
    languages: List[Dict[str, Any]] = []
    skipped = 0
    for fields in reader:
        fields = [f.strip() for f in fields]
        if not any(fields):
            continue
        if headers is None:
            headers = fields
            continue
        if len(fields) != len(headers):
            skipped += 1
            continue
        language = _row_to_language(dict(zip(headers, fields)))
        if language is not None:
            languages.append(language)

    if skipped:
        logger.debug("Skipped %d malformed language rows", skipped)
    return languages


def _contains(value: Optional[str], needle: str) -> bool:
    return bool(value) and needle in value.lower()


class LanguageService:
    """In-memory search over the reference language dataset."""

    def __init__(self, languages: Iterable[Dict[str, Any]]):
        self.languages = list(languages)
        self._by_code = {}
        for language in self.languages:
            self._by_code.setdefault(language["ethnologue_code"].lower(), language)

    @classmethod
    def from_path(cls, path: str) -> "LanguageService":
        """Load the dataset at *path*; a missing file gives an empty dataset."""
        try:
            text = Path(path).read_text(encoding="utf-8")
        except FileNotFoundError:
            logger.warning("Language dataset not found at %s; search will be empty", path)
            return cls([])
        languages = parse_all_access_csv(text)
        logger.info("Loaded %d languages from %s", len(languages), path)
        return cls(languages)

    def search(
        self,
        query: str = "",
        eten_eligible_only: bool = False,
        include_sign_languages: bool = True,
        regions: Optional[List[str]] = None,
        countries: Optional[List[str]] = None,
        limit: Optional[int] = DEFAULT_SEARCH_LIMIT,
    ) -> List[Dict[str, Any]]:
        """Case-insensitive substring search with optional filters.

        ``regions`` match the continent or the illumiNations region;
        ``countries`` match the country name.  Each list matches when any
        of its entries is a substring.
        """
        results = self.languages

        if eten_eligible_only:
            results = [l for l in results if l["eligible_for_eten_funding"]]
        if not include_sign_languages:
            results = [l for l in results if not l["is_sign_language"]]
        if regions:
            wanted = [r.lower() for r in regions if r.strip()]
            results = [
                l
                for l in results
                if any(
                    _contains(l["continent"], r) or _contains(l["luminations_region"], r)
                    for r in wanted
                )
            ]
        if countries:
            wanted = [c.lower() for c in countries if c.strip()]
            results = [
                l for l in results if any(_contains(l["country"], c) for c in wanted)
            ]

        term = (query or "").strip().lower()
        if term:
            results = [
                l for l in results if any(_contains(l[f], term) for f in _SEARCH_FIELDS)
            ]

        if limit:
            results = results[:limit]
        return results

    def get_by_code(self, code: str) -> Optional[Dict[str, Any]]:
        return self._by_code.get((code or "").strip().lower())

    def countries(self) -> List[Dict[str, Any]]:
        """Countries in the dataset with the number of languages in each."""
        summary: Dict[str, Dict[str, Any]] = {}
        for language in self.languages:
            name = language["country"]
            if not name:
                continue
            entry = summary.setdefault(
                name,
                {
                    "name": name,
                    "code": language["country_code"],
                    "region": language["continent"],
                    "languages_count": 0,
                },
            )
            entry["languages_count"] += 1
        return sorted(summary.values(), key=lambda c: c["name"])


@lru_cache(maxsize=1)
def get_language_service() -> LanguageService:
    """Process-wide dataset, loaded on first use."""
    return LanguageService.from_path(LANGUAGE_DATA_PATH)
