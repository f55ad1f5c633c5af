import logging
from datetime import UTC
from datetime import datetime

from fastapi import APIRouter
from fastapi import HTTPException
from fastapi import Security
from fastapi.security import HTTPAuthorizationCredentials

from backend.api.schemas.contributions import ContributionReportResponse
from backend.api.schemas.contributions import ContributionsRequest
from backend.clients.github_client import MalformedCalendarError
from backend.core.security import bearer_scheme
from backend.core.security import resolve_github_token
from backend.services.contributions_service import InvalidContributionRequestError
from backend.services.contributions_service import InvalidGitHubTokenError
from backend.services.contributions_service import NoContributionDataError
from backend.services.contributions_service import compute_report
from backend.settings import Settings


logger = logging.getLogger(__name__)
router = APIRouter()
settings = Settings()


@router.get("/")
async def root() -> dict[str, str]:
    """Return a basic service greeting."""

    return {"message": "Hello World"}


@router.get("/health/live")
def health_live() -> dict[str, str]:
    """Return liveness probe response for health checks."""

    return {"status": "ok"}


@router.post("/api/contributions", response_model=ContributionReportResponse)
def get_contribution_report(
    payload: ContributionsRequest,
    credentials: HTTPAuthorizationCredentials | None = Security(bearer_scheme),
) -> ContributionReportResponse:
    """Return a multi-year contribution report for a GitHub user."""

    token = resolve_github_token(payload.token, credentials)
    today = datetime.now(UTC).date()

    try:
        report = compute_report(
            username=payload.username,
            token=token,
            year_count=payload.years,
            app_settings=settings,
            today=today,
        )
    except InvalidContributionRequestError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except InvalidGitHubTokenError as exc:
        raise HTTPException(status_code=401, detail="GitHub token is invalid") from exc
    except NoContributionDataError as exc:
        raise HTTPException(
            status_code=404, detail="No contribution data available"
        ) from exc
    except MalformedCalendarError as exc:
        logger.exception("GitHub returned a malformed contribution calendar")
        raise HTTPException(
            status_code=500, detail="Failed to fetch contributions"
        ) from exc

    return ContributionReportResponse.from_report(report, current_year=today.year)
