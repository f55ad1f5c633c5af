from collections.abc import Mapping
from dataclasses import dataclass
from datetime import date
from typing import Any

import httpx


CONTRIBUTION_CALENDAR_QUERY = """
query($login: String!, $from: DateTime!, $to: DateTime!) {
  user(login: $login) {
    contributionsCollection(from: $from, to: $to) {
      contributionCalendar {
        totalContributions
        weeks {
          contributionDays {
            date
            contributionCount
            contributionLevel
          }
        }
      }
    }
  }
}
"""

USER_AGENT = "github-contribution-history"


class GitHubClientError(Exception):
    """Base class for failures of a single GitHub GraphQL request."""

    reason = "github_error"


class GitHubUnauthorizedError(GitHubClientError):
    """Raised when GitHub rejects the provided token."""

    reason = "unauthorized"


class GitHubTransportError(GitHubClientError):
    """Raised on network errors, non-2xx statuses or undecodable bodies."""

    reason = "transport_error"


class GitHubGraphQLError(GitHubClientError):
    """Raised when the GraphQL payload reports errors."""

    reason = "graphql_error"


class GitHubDataMissingError(GitHubClientError):
    """Raised when the user or contribution calendar is absent."""

    reason = "not_found"


class MalformedCalendarError(ValueError):
    """Raised when a calendar is present but its contents cannot be trusted."""


@dataclass(frozen=True)
class ContributionDay:
    date: date
    count: int
    level: str


@dataclass(frozen=True)
class ContributionWeek:
    days: tuple[ContributionDay, ...]


@dataclass(frozen=True)
class ContributionCalendar:
    total_contributions: int
    weeks: tuple[ContributionWeek, ...]

    def iter_days(self):
        for week in self.weeks:
            yield from week.days


def year_window(year: int) -> tuple[str, str]:
    """Return the inclusive GraphQL DateTime bounds covering one calendar year."""

    return f"{year}-01-01T00:00:00Z", f"{year}-12-31T23:59:59Z"


def _is_count(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value >= 0


def parse_contribution_day(raw_day: Any) -> ContributionDay:
    if not isinstance(raw_day, Mapping):
        raise MalformedCalendarError("contribution day is not an object")

    raw_date = raw_day.get("date")
    if not isinstance(raw_date, str):
        raise MalformedCalendarError("contribution day has no date")
    try:
        parsed_date = date.fromisoformat(raw_date)
    except ValueError as exc:
        raise MalformedCalendarError(f"invalid contribution date {raw_date!r}") from exc

    raw_count = raw_day.get("contributionCount")
    if not _is_count(raw_count):
        raise MalformedCalendarError(f"invalid contribution count on {raw_date}")

    raw_level = raw_day.get("contributionLevel")
    level = raw_level if isinstance(raw_level, str) else "NONE"

    return ContributionDay(date=parsed_date, count=raw_count, level=level)


def parse_contribution_calendar(raw_calendar: Mapping[str, Any]) -> ContributionCalendar:
    """Validate a raw `contributionCalendar` object into domain types.

    Raises:
        MalformedCalendarError: If totals, weeks or days are not well formed.
    """

    total = raw_calendar.get("totalContributions")
    if not _is_count(total):
        raise MalformedCalendarError("totalContributions is not a non-negative integer")

    raw_weeks = raw_calendar.get("weeks")
    if not isinstance(raw_weeks, list):
        raise MalformedCalendarError("contribution weeks are missing")

    weeks: list[ContributionWeek] = []
    for raw_week in raw_weeks:
        if not isinstance(raw_week, Mapping):
            raise MalformedCalendarError("contribution week is not an object")
        raw_days = raw_week.get("contributionDays")
        if not isinstance(raw_days, list):
            raise MalformedCalendarError("contribution week has no days")
        days = sorted(
            (parse_contribution_day(raw_day) for raw_day in raw_days),
            key=lambda day: day.date,
        )
        weeks.append(ContributionWeek(days=tuple(days)))

    return ContributionCalendar(total_contributions=total, weeks=tuple(weeks))


def fetch_contribution_calendar(
    username: str,
    token: str,
    year: int,
    graphql_url: str,
    timeout: float = 20.0,
    client: httpx.Client | None = None,
) -> ContributionCalendar:
    """Fetch one calendar year of contributions from GitHub GraphQL API."""

    from_timestamp, to_timestamp = year_window(year)
    variables = {"login": username, "from": from_timestamp, "to": to_timestamp}
    headers = {
        "Authorization": f"Bearer {token}",
        "Content-Type": "application/json",
        "User-Agent": USER_AGENT,
    }
    post = client.post if client is not None else httpx.post

    try:
        response = post(
            graphql_url,
            json={"query": CONTRIBUTION_CALENDAR_QUERY, "variables": variables},
            headers=headers,
            timeout=timeout,
        )
        response.raise_for_status()
    except httpx.HTTPStatusError as exc:
        if exc.response.status_code in {401, 403}:
            raise GitHubUnauthorizedError("GitHub rejected the token") from exc
        raise GitHubTransportError(
            f"GitHub GraphQL returned HTTP {exc.response.status_code}"
        ) from exc
    except httpx.HTTPError as exc:
        raise GitHubTransportError("GitHub GraphQL request failed") from exc

    try:
        payload: Any = response.json()
    except ValueError as exc:
        raise GitHubTransportError("GitHub GraphQL response is not JSON") from exc

    if not isinstance(payload, Mapping):
        raise GitHubTransportError("GitHub GraphQL response is invalid")

    if payload.get("errors"):
        raise GitHubGraphQLError("GitHub GraphQL returned errors")

    data = payload.get("data")
    user = data.get("user") if isinstance(data, Mapping) else None
    collection = (
        user.get("contributionsCollection") if isinstance(user, Mapping) else None
    )
    calendar = (
        collection.get("contributionCalendar")
        if isinstance(collection, Mapping)
        else None
    )
    if not isinstance(calendar, Mapping):
        raise GitHubDataMissingError(f"No contribution calendar for {username}")

    return parse_contribution_calendar(calendar)
