from typing import Optional

from fastapi import APIRouter, Depends, Query

from .. import schemas
from ..errors import ValidationError
from ..trials import DEFAULT_PAGE_SIZE, ClinicalTrialsClient, get_trial_search

router = APIRouter(prefix="/api", tags=["trials"])


@router.get(
    "/clinical-trials",
    response_model=schemas.TrialSearchResponse,
    responses={400: {"model": schemas.ErrorResponse}, 500: {"model": schemas.ErrorResponse}},
)
def clinical_trials(
    location: Optional[str] = Query(None),
    condition: Optional[str] = Query(None),
    page_size: int = Query(DEFAULT_PAGE_SIZE, alias="pageSize"),
    trial_search: ClinicalTrialsClient = Depends(get_trial_search),
):
    if not location or not location.strip():
        raise ValidationError("Location parameter is required")
    result = trial_search.search(location=location, condition=condition, page_size=page_size)
    return schemas.TrialSearchResponse(total_count=result.total_count, studies=result.studies)
