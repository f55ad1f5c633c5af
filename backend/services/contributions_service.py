import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from datetime import UTC
from datetime import date
from datetime import datetime
from decimal import ROUND_HALF_UP
from decimal import Decimal

import httpx

from backend.clients.github_client import ContributionCalendar
from backend.clients.github_client import GitHubClientError
from backend.clients.github_client import fetch_contribution_calendar
from backend.settings import Settings


logger = logging.getLogger(__name__)

MONTH_ABBREVIATIONS = (
    "Jan",
    "Feb",
    "Mar",
    "Apr",
    "May",
    "Jun",
    "Jul",
    "Aug",
    "Sep",
    "Oct",
    "Nov",
    "Dec",
)


class InvalidContributionRequestError(Exception):
    """Raised when username, token or year count are unusable."""


class InvalidGitHubTokenError(Exception):
    """Raised when GitHub rejected the token for every requested year."""


class NoContributionDataError(Exception):
    """Raised when no requested year produced a contribution calendar."""


@dataclass(frozen=True)
class YearContributions:
    year: int
    total: int
    calendar: ContributionCalendar


@dataclass(frozen=True)
class YearFetchResult:
    year: int
    status: str
    reason: str | None = None
    contributions: YearContributions | None = None

    @property
    def ok(self) -> bool:
        return self.status == "ok"


@dataclass(frozen=True)
class MonthCount:
    month: str
    count: int


@dataclass(frozen=True)
class MonthlyBucket:
    year: int
    months: tuple[MonthCount, ...]


@dataclass(frozen=True)
class BestYear:
    year: int
    total: int


@dataclass(frozen=True)
class ContributionStats:
    total_contributions: int
    average_per_year: int
    best_year: BestYear
    years_active: int


@dataclass(frozen=True)
class ContributionReport:
    username: str
    years: tuple[YearContributions, ...]
    monthly_data: tuple[MonthlyBucket, ...]
    stats: ContributionStats
    year_statuses: tuple[YearFetchResult, ...] = ()


def round_half_away_from_zero(value: Decimal) -> int:
    """Round to the nearest integer, halves away from zero.

    Builtin `round` rounds halves to even, which would turn 2.5 into 2.
    """

    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def monthly_breakdown(year: int, calendar: ContributionCalendar) -> MonthlyBucket:
    """Re-bucket daily counts of one calendar into twelve Jan..Dec totals."""

    counts = [0] * 12
    for day in calendar.iter_days():
        counts[day.date.month - 1] += day.count

    return MonthlyBucket(
        year=year,
        months=tuple(
            MonthCount(month=name, count=count)
            for name, count in zip(MONTH_ABBREVIATIONS, counts)
        ),
    )


def pick_best_year(years: tuple[YearContributions, ...]) -> BestYear:
    """Return the year with the highest total; the earliest year wins ties."""

    if not years:
        raise NoContributionDataError("No contribution data available")

    best = years[0]
    for candidate in years[1:]:
        if candidate.total > best.total:
            best = candidate
    return BestYear(year=best.year, total=best.total)


def build_report(
    username: str, results: list[YearFetchResult]
) -> ContributionReport:
    """Aggregate fetched years into sorted totals, stats and month buckets.

    Failed results are kept only in `year_statuses`.

    Raises:
        NoContributionDataError: If no result carries contributions.
    """

    years = tuple(
        sorted(
            (result.contributions for result in results if result.contributions),
            key=lambda item: item.year,
        )
    )
    if not years:
        raise NoContributionDataError("No contribution data available")

    total = sum(item.total for item in years)
    stats = ContributionStats(
        total_contributions=total,
        average_per_year=round_half_away_from_zero(Decimal(total) / len(years)),
        best_year=pick_best_year(years),
        years_active=len(years),
    )
    statuses = tuple(sorted(results, key=lambda result: result.year))

    return ContributionReport(
        username=username,
        years=years,
        monthly_data=tuple(monthly_breakdown(item.year, item.calendar) for item in years),
        stats=stats,
        year_statuses=statuses,
    )


def fetch_year(
    username: str,
    token: str,
    year: int,
    graphql_url: str,
    timeout: float = 20.0,
    client: httpx.Client | None = None,
) -> YearFetchResult:
    """Fetch one year, turning upstream failures into a failed result.

    `MalformedCalendarError` is not absorbed: a calendar with bad dates
    fails the whole request.
    """

    try:
        calendar = fetch_contribution_calendar(
            username=username,
            token=token,
            year=year,
            graphql_url=graphql_url,
            timeout=timeout,
            client=client,
        )
    except GitHubClientError as exc:
        logger.warning(
            "Contribution fetch failed for %s year %s: %s (%s)",
            username,
            year,
            exc.reason,
            exc,
        )
        return YearFetchResult(year=year, status="failed", reason=exc.reason)

    return YearFetchResult(
        year=year,
        status="ok",
        contributions=YearContributions(
            year=year,
            total=calendar.total_contributions,
            calendar=calendar,
        ),
    )


def requested_years(current_year: int, year_count: int) -> list[int]:
    """Return years from `current_year` back to `current_year - (year_count - 1)`."""

    return [current_year - offset for offset in range(year_count)]


def fetch_years(
    username: str,
    token: str,
    year_count: int,
    app_settings: Settings,
    today: date | None = None,
    transport: httpx.BaseTransport | None = None,
) -> list[YearFetchResult]:
    """Fetch every requested year on a small worker pool, most recent first."""

    current_year = (today or datetime.now(UTC).date()).year
    years = requested_years(current_year, year_count)
    max_workers = max(1, min(app_settings.fetch_max_workers, len(years)))

    with httpx.Client(transport=transport) as client:
        with ThreadPoolExecutor(max_workers=max_workers) as executor:
            return list(
                executor.map(
                    lambda year: fetch_year(
                        username=username,
                        token=token,
                        year=year,
                        graphql_url=app_settings.github_graphql_url,
                        timeout=app_settings.github_timeout_seconds,
                        client=client,
                    ),
                    years,
                )
            )


def compute_report(
    username: str | None,
    token: str | None,
    year_count: int | None = None,
    app_settings: Settings | None = None,
    today: date | None = None,
    transport: httpx.BaseTransport | None = None,
) -> ContributionReport:
    """Fetch and aggregate a user's contributions over the last `year_count` years.

    Raises:
        InvalidContributionRequestError: Missing username/token or bad year count.
        InvalidGitHubTokenError: GitHub rejected the token for every year.
        NoContributionDataError: No year could be fetched.
        MalformedCalendarError: GitHub returned a calendar with invalid days.
    """

    app_settings = app_settings or Settings()
    username = (username or "").strip()
    token = (token or "").strip()
    if not username or not token:
        raise InvalidContributionRequestError("Username and token are required")

    if year_count is None:
        year_count = app_settings.default_year_count
    if not 1 <= year_count <= app_settings.max_year_count:
        raise InvalidContributionRequestError(
            f"years must be between 1 and {app_settings.max_year_count}"
        )

    results = fetch_years(
        username=username,
        token=token,
        year_count=year_count,
        app_settings=app_settings,
        today=today,
        transport=transport,
    )

    failures = [result for result in results if not result.ok]
    if len(failures) == len(results) and all(
        result.reason == "unauthorized" for result in failures
    ):
        raise InvalidGitHubTokenError("GitHub token is invalid")

    report = build_report(username, results)
    logger.info(
        "Built contribution report for %s: %s of %s years fetched",
        username,
        report.stats.years_active,
        year_count,
    )
    return report
