"""
Stats Endpoints

    POST /stats/{user_id}?hash=H   submit a stats bundle
    GET  /stats/{user_id}?hash=H   read the user's current stats

Both authenticate the anonymized user id against the caller before touching
the store. Responses are ``{"Succeeded": bool, "Error": str}``, plus
``Stats`` on a successful read.
"""

from typing import Optional

import structlog
from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ValidationError

from statshub.errors import ClientInputError, StatsHubError
from statshub.ingestion.identity import IdentityVerifier, parse_user_info
from statshub.ingestion.submission import SubmissionProcessor
from statshub.stats.models import USER, StatsBundle, StatsSubmission
from statshub.stats.query import DimensionQueryService

router = APIRouter()
logger = structlog.get_logger(__name__)


class StatsResponse(BaseModel):
    """Outcome of a stats request"""
    Succeeded: bool
    Error: str = ""


class StatsQueryResponse(StatsResponse):
    """Outcome of a stats read; Stats is null if the user never submitted"""
    Stats: Optional[StatsBundle] = None


def get_verifier(request: Request) -> IdentityVerifier:
    return request.app.state.verifier


def get_submission_processor(request: Request) -> SubmissionProcessor:
    return request.app.state.submission_processor


def get_query_service(request: Request) -> DimensionQueryService:
    return request.app.state.query_service


def parse_submission(body: bytes) -> StatsSubmission:
    """Decode a POST body, mapping any decode or validation problem to a 400."""
    try:
        return StatsSubmission.model_validate_json(body)
    except ValidationError as e:
        first = e.errors()[0]
        location = ".".join(str(part) for part in first.get("loc", ()))
        detail = f"{location}: {first['msg']}" if location else first["msg"]
        raise ClientInputError(f"Unable to decode request: {detail}")


async def stats_error_handler(request: Request, exc: StatsHubError) -> JSONResponse:
    """Render a StatsHubError as a failed StatsResponse"""
    if exc.status_code >= 500:
        logger.error("Stats request failed", path=request.url.path, error=exc.message)
    return JSONResponse(
        status_code=exc.status_code,
        content=StatsResponse(Succeeded=False, Error=exc.message).model_dump(),
    )


@router.api_route("/stats/", methods=["GET", "POST"], include_in_schema=False)
async def missing_user_id() -> StatsResponse:
    raise ClientInputError("Request URL is missing user id")


@router.post("/stats/{user_id}", response_model=StatsResponse)
async def post_stats(
    user_id: str,
    request: Request,
    verifier: IdentityVerifier = Depends(get_verifier),
    processor: SubmissionProcessor = Depends(get_submission_processor),
) -> StatsResponse:
    """Merge a stats bundle into the caller's anonymized user entity."""
    user_info = parse_user_info(user_id, request.query_params)
    await verifier.verify(request, user_info)

    submission = parse_submission(await request.body())
    await processor.submit(user_info.user_id, submission)
    return StatsResponse(Succeeded=True)


@router.get("/stats/{user_id}", response_model=StatsQueryResponse)
async def get_stats(
    user_id: str,
    request: Request,
    verifier: IdentityVerifier = Depends(get_verifier),
    query_service: DimensionQueryService = Depends(get_query_service),
) -> StatsQueryResponse:
    """Current aggregated stats of the caller's anonymized user entity."""
    user_info = parse_user_info(user_id, request.query_params)
    await verifier.verify(request, user_info)

    stats = await query_service.entity(USER, str(user_info.user_id))
    return StatsQueryResponse(Succeeded=True, Stats=stats)
