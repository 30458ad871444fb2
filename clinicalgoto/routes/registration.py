from typing import Any, Dict

from fastapi import APIRouter, Body, Depends, status

from .. import schemas
from ..workflow import RegistrationWorkflow, get_workflow

router = APIRouter(prefix="/api", tags=["registration"])

ERROR_RESPONSES = {
    400: {"model": schemas.ErrorResponse},
    409: {"model": schemas.ErrorResponse},
    500: {"model": schemas.ErrorResponse},
}


@router.post(
    "/register",
    response_model=schemas.RegisterResponse,
    status_code=status.HTTP_201_CREATED,
    responses=ERROR_RESPONSES,
)
def register(
    fields: Dict[str, Any] = Body(...),
    workflow: RegistrationWorkflow = Depends(get_workflow),
):
    """Store a registrant without searching for trials."""
    registrant = workflow.register(fields)
    return schemas.RegisterResponse(
        message="Registration successful! Welcome email sent if email service is configured.",
        subscriber=schemas.SubscriberOut.model_validate(registrant),
    )


@router.post(
    "/register-and-search",
    response_model=schemas.RegisterAndSearchResponse,
    responses=ERROR_RESPONSES,
)
def register_and_search(
    fields: Dict[str, Any] = Body(...),
    workflow: RegistrationWorkflow = Depends(get_workflow),
):
    """Store a registrant, then look up recruiting trials near them.

    A failed trial search still answers 200 with an empty ``trials`` list;
    the registration is not undone.
    """
    outcome = workflow.register_and_search(fields)
    if outcome.searched:
        message = f"Registration successful! {len(outcome.trials)} clinical trials found."
    else:
        message = "Registration successful! Clinical trial search is currently unavailable."
    return schemas.RegisterAndSearchResponse(
        message=message,
        subscriber=schemas.SearchSubscriberOut.model_validate(outcome.registrant),
        trials=outcome.trials,
    )
