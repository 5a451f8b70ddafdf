"""Release check trigger endpoint, called by the cron scheduler."""

import logging

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse

from backstage.api.dependencies import get_release_check_service, verify_cron_secret
from backstage.api.schemas.release_check import CheckMusicPlatformsResponse
from backstage.application.services.release_check_service import ReleaseCheckService

logger = logging.getLogger(__name__)

router = APIRouter()


# Hey future me - this is the ONLY write-ish endpoint of the service. The scheduler treats
# anything but 2xx as "job failed", so 500 is reserved for the aborted run (user directory
# down). A run where half the platforms failed is still 200 - the details are in
# platformResults and errors.
@router.get(
    "/check-music-platforms",
    response_model=CheckMusicPlatformsResponse,
    dependencies=[Depends(verify_cron_secret)],
    summary="Check all platforms for new releases and notify audiences",
    responses={500: {"description": "Run aborted: active users could not be loaded"}},
)
async def check_music_platforms(
    service: ReleaseCheckService = Depends(get_release_check_service),
) -> JSONResponse:
    summary = await service.run_check()
    body = CheckMusicPlatformsResponse.from_summary(summary)

    status_code = status.HTTP_200_OK if summary.success else status.HTTP_500_INTERNAL_SERVER_ERROR
    return JSONResponse(
        content=body.model_dump(mode="json", by_alias=True),
        status_code=status_code,
    )
