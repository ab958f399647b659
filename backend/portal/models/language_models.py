"""Pydantic schemas for the language reference dataset."""

from typing import List, Optional

from pydantic import BaseModel, Field


class LanguageResponse(BaseModel):
    name: str
    ethnologue_code: str
    country: str = ""
    country_code: Optional[str] = None
    continent: Optional[str] = None
    speakers: Optional[int] = None
    all_access_goal: Optional[str] = None
    eligible_for_eten_funding: bool = False
    all_access_status: Optional[str] = None
    language_population_group: Optional[str] = None
    first_language_population: Optional[int] = None
    egids_group: Optional[str] = None
    egids_level: Optional[str] = None
    is_sign_language: bool = False
    is_iso_recognized: bool = False
    luminations_region: Optional[str] = None


class LanguageSearchResponse(BaseModel):
    languages: List[LanguageResponse]
    total: int


class CountryInfo(BaseModel):
    name: str
    code: Optional[str] = None
    region: Optional[str] = None
    languages_count: int = 0


class CountryListResponse(BaseModel):
    countries: List[CountryInfo] = Field(default_factory=list)
