"""
Wiza Prospect List Routes

Starts Wiza prospect-list creation for a tracked company. Creation is
asynchronous on Wiza's side; the client polls with the returned list_id.
"""

from fastapi import APIRouter, Depends, Response, status

from careerlyst.domain.prospecting import CreateProspectListRequest, ProspectListResult
from careerlyst.api.dependencies import ProspectListServiceDep, get_current_user_id


router = APIRouter()


@router.post(
    "/jobs/wiza/create-list",
    response_model=ProspectListResult,
    status_code=status.HTTP_201_CREATED,
)
async def create_prospect_list(
    request: CreateProspectListRequest,
    response: Response,
    service: ProspectListServiceDep,
    user_id: str = Depends(get_current_user_id),
):
    """
    Create a prospect list for finding contacts at a company.

    Returns 201 for a new list and 200 when a concurrent request's list is
    reused; 409 means another request is still creating it.
    """
    result = await service.create_prospect_list(
        user_id=user_id,
        company_id=request.company_id,
        application_id=request.application_id,
        job_titles=request.job_titles,
        company_name=request.company_name,
    )

    if result.reused:
        response.status_code = status.HTTP_200_OK
    return result
