"""
Unit Tests for the Language Reference Service

Tests CSV parsing of the All Access export and the in-memory search.

Usage:
    cd backend && pytest tests/test_language_service.py -v
"""

import os
import sys

import pytest

# Add backend to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from portal.services.language_service import (
    LanguageService,
    parse_all_access_csv,
    parse_population,
)


HEADER = (
    "Continent,Country,Country Code,Language Name,Language Code,Is Sign Language,"
    "Is ISO Recognized,Language Population Group,First Language Population,"
    "EGIDS Group,EGIDS Level,All Access Status,All Access Goal,"
    "Eligible for ETEN Funding,IllumiNationsRegion"
)


def make_row(
    continent="Africa",
    country="Burkina Faso",
    country_code="BF",
    name="Kalamsé [knz]",
    code="",
    sign="No",
    iso="Yes",
    population_group="10K-100K",
    population='"12,000"',
    egids_group="Vigorous",
    egids_level="6a",
    status="Goal Not Met",
    goal="Full Bible",
    eten="Yes",
    region="West Africa",
) -> str:
    """Factory function to create one CSV line."""
    return ",".join(
        [
            continent,
            country,
            country_code,
            name,
            code,
            sign,
            iso,
            population_group,
            population,
            egids_group,
            egids_level,
            status,
            goal,
            eten,
            region,
        ]
    )


def make_csv(*rows: str, bom: bool = False) -> str:
    text = "\n".join([HEADER, *rows]) + "\n"
    return ("\ufeff" + text) if bom else text


@pytest.fixture
def service():
    return LanguageService(
        parse_all_access_csv(
            make_csv(
                make_row(),
                make_row(name="Bissa [bib]", eten="No", population="0"),
                make_row(
                    continent="Asia",
                    country="Nepal",
                    country_code="NP",
                    name="Nepali Sign Language [nsp]",
                    sign="Yes",
                    region="South Asia",
                    goal="New Testament",
                ),
                make_row(
                    country="Ghana",
                    country_code="GH",
                    name="Dagaare",
                    code="dga",
                    status="Goal Met",
                ),
            )
        )
    )


class TestParsePopulation:

    def test_thousands_separator(self):
        assert parse_population("1,234,567") == 1234567

    @pytest.mark.parametrize("value", ["", "0", None, "n/a"])
    def test_empty_values(self, value):
        assert parse_population(value) is None


class TestParseAllAccessCsv:

    def test_name_with_code_is_split(self):
        languages = parse_all_access_csv(make_csv(make_row()))
        assert languages[0]["name"] == "Kalamsé"
        assert languages[0]["ethnologue_code"] == "knz"

    def test_language_code_column_used_without_brackets(self):
        languages = parse_all_access_csv(make_csv(make_row(name="Dagaare", code="dga")))
        assert languages[0]["name"] == "Dagaare"
        assert languages[0]["ethnologue_code"] == "dga"

    def test_bom_stripped_from_header(self):
        languages = parse_all_access_csv(make_csv(make_row(), bom=True))
        assert languages[0]["continent"] == "Africa"

    def test_quoted_population_with_commas(self):
        languages = parse_all_access_csv(make_csv(make_row()))
        assert languages[0]["first_language_population"] == 12000
        assert languages[0]["speakers"] == 12000

    def test_escaped_quotes_in_field(self):
        languages = parse_all_access_csv(
            make_csv(make_row(goal='"Portions, ""OT"" first"'))
        )
        assert languages[0]["all_access_goal"] == 'Portions, "OT" first'

    def test_yes_flags_are_booleans(self):
        language = parse_all_access_csv(make_csv(make_row(eten="YES", sign="no")))[0]
        assert language["eligible_for_eten_funding"] is True
        assert language["is_sign_language"] is False
        assert language["is_iso_recognized"] is True

    def test_field_count_mismatch_skipped(self):
        languages = parse_all_access_csv(
            make_csv(make_row(), "Africa,Mali,ML,Bambara [bam]")
        )
        assert len(languages) == 1

    def test_rows_without_name_or_code_dropped(self):
        languages = parse_all_access_csv(make_csv(make_row(name="Unnamed", code="")))
        assert languages == []

    def test_blank_lines_ignored(self):
        text = make_csv(make_row()) + "\n\n"
        assert len(parse_all_access_csv(text)) == 1

    def test_empty_text(self):
        assert parse_all_access_csv("") == []


class TestSearch:

    def test_query_matches_name_case_insensitive(self, service):
        assert [l["name"] for l in service.search("kalam")] == ["Kalamsé"]

    def test_query_matches_code(self, service):
        assert [l["ethnologue_code"] for l in service.search("NSP")] == ["nsp"]

    def test_query_matches_status(self, service):
        assert [l["name"] for l in service.search("goal met")] == ["Dagaare"]

    def test_eten_only(self, service):
        names = {l["name"] for l in service.search(eten_eligible_only=True)}
        assert "Bissa" not in names
        assert "Kalamsé" in names

    def test_exclude_sign_languages(self, service):
        names = {l["name"] for l in service.search(include_sign_languages=False)}
        assert "Nepali Sign Language" not in names

    def test_region_matches_continent_or_region(self, service):
        assert [l["name"] for l in service.search(regions=["south asia"])] == [
            "Nepali Sign Language"
        ]
        assert len(service.search(regions=["africa"])) == 3

    def test_country_filter(self, service):
        assert [l["name"] for l in service.search(countries=["ghana"])] == ["Dagaare"]

    def test_limit(self, service):
        assert len(service.search(limit=2)) == 2


class TestLookup:

    def test_get_by_code(self, service):
        assert service.get_by_code("KNZ")["name"] == "Kalamsé"
        assert service.get_by_code("zzz") is None

    def test_countries_with_counts(self, service):
        countries = {c["name"]: c for c in service.countries()}
        assert countries["Burkina Faso"]["languages_count"] == 2
        assert countries["Nepal"]["code"] == "NP"
        assert countries["Ghana"]["region"] == "Africa"

    def test_missing_file_gives_empty_dataset(self, tmp_path):
        service = LanguageService.from_path(str(tmp_path / "missing.csv"))
        assert service.languages == []
        assert service.search("anything") == []

    def test_load_from_file(self, tmp_path):
        path = tmp_path / "languages.csv"
        path.write_text(make_csv(make_row()), encoding="utf-8")
        assert len(LanguageService.from_path(str(path)).languages) == 1
