"""Reference language search."""

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from portal.deps import get_token_user
from portal.models.language_models import (
    CountryInfo,
    CountryListResponse,
    LanguageResponse,
    LanguageSearchResponse,
)
from portal.services.language_service import get_language_service

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1", tags=["languages"])


@router.get("/languages", response_model=LanguageSearchResponse)
async def search_languages(
    q: str = Query("", max_length=200, description="Name, code, country, goal or status"),
    eten_eligible_only: bool = Query(False),
    include_sign_languages: bool = Query(True),
    region: Optional[List[str]] = Query(None, description="Continent or region"),
    country: Optional[List[str]] = Query(None),
    limit: int = Query(50, ge=1, le=500),
    current_user: dict = Depends(get_token_user),
):
    languages = get_language_service().search(
        q,
        eten_eligible_only=eten_eligible_only,
        include_sign_languages=include_sign_languages,
        regions=region,
        countries=country,
        limit=limit,
    )
    return LanguageSearchResponse(
        languages=[LanguageResponse(**l) for l in languages],
        total=len(languages),
    )


@router.get("/languages/countries", response_model=CountryListResponse)
async def list_countries(current_user: dict = Depends(get_token_user)):
    return CountryListResponse(
        countries=[CountryInfo(**c) for c in get_language_service().countries()]
    )


@router.get("/languages/{code}", response_model=LanguageResponse)
async def get_language(code: str, current_user: dict = Depends(get_token_user)):
    language = get_language_service().get_by_code(code)
    if language is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Language not found",
        )
    return LanguageResponse(**language)
