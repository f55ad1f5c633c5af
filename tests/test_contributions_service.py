import json
import logging
from datetime import date

import httpx
import pytest

from backend.clients.github_client import MalformedCalendarError
from backend.services.contributions_service import InvalidContributionRequestError
from backend.services.contributions_service import InvalidGitHubTokenError
from backend.services.contributions_service import NoContributionDataError
from backend.services.contributions_service import compute_report
from backend.services.contributions_service import requested_years
from backend.settings import Settings


TODAY = date(2024, 6, 1)


def year_of(request: httpx.Request) -> int:
    variables = json.loads(request.content)["variables"]
    return int(variables["from"][:4])


def calendar_response(year: int, count: int) -> httpx.Response:
    return httpx.Response(
        200,
        json={
            "data": {
                "user": {
                    "contributionsCollection": {
                        "contributionCalendar": {
                            "totalContributions": count,
                            "weeks": [
                                {
                                    "contributionDays": [
                                        {
                                            "date": f"{year}-03-10",
                                            "contributionCount": count,
                                            "contributionLevel": "FOURTH_QUARTILE",
                                        }
                                    ]
                                }
                            ],
                        }
                    }
                }
            }
        },
    )


@pytest.fixture
def app_settings() -> Settings:
    return Settings(
        github_graphql_url="https://api.github.test/graphql",
        fetch_max_workers=2,
        sentry_dsn=None,
    )


def test_requested_years_counts_back_from_current_year() -> None:
    assert requested_years(2024, 3) == [2024, 2023, 2022]


@pytest.mark.parametrize(
    ("username", "token"),
    [("", "token"), ("octocat", ""), ("   ", "token"), (None, "token"), ("octocat", None)],
)
def test_compute_report_rejects_missing_input_without_network(
    app_settings: Settings, username, token
) -> None:
    calls: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return httpx.Response(500)

    with pytest.raises(InvalidContributionRequestError):
        compute_report(
            username,
            token,
            app_settings=app_settings,
            today=TODAY,
            transport=httpx.MockTransport(handler),
        )

    assert calls == []


@pytest.mark.parametrize("year_count", [0, -1, 16])
def test_compute_report_rejects_out_of_range_year_count(
    app_settings: Settings, year_count: int
) -> None:
    with pytest.raises(InvalidContributionRequestError):
        compute_report("octocat", "token", year_count, app_settings=app_settings)


def test_compute_report_defaults_to_five_years(app_settings: Settings) -> None:
    seen_years: list[int] = []

    def handler(request: httpx.Request) -> httpx.Response:
        year = year_of(request)
        seen_years.append(year)
        return calendar_response(year, 1)

    report = compute_report(
        "octocat",
        "token",
        app_settings=app_settings,
        today=TODAY,
        transport=httpx.MockTransport(handler),
    )

    assert sorted(seen_years) == [2020, 2021, 2022, 2023, 2024]
    assert report.stats.years_active == 5


def test_compute_report_drops_unavailable_years(
    app_settings: Settings, caplog: pytest.LogCaptureFixture
) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        year = year_of(request)
        if year == 2021:
            return httpx.Response(200, json={"errors": [{"message": "boom"}]})
        if year == 2020:
            return httpx.Response(502)
        return calendar_response(year, year - 2000)

    with caplog.at_level(logging.WARNING):
        report = compute_report(
            "octocat",
            "ghp_secret",
            5,
            app_settings=app_settings,
            today=TODAY,
            transport=httpx.MockTransport(handler),
        )

    assert [item.year for item in report.years] == [2022, 2023, 2024]
    assert report.stats.years_active == 3
    assert report.stats.total_contributions == 22 + 23 + 24
    assert report.stats.average_per_year == 23
    assert report.stats.best_year.year == 2024
    assert [(status.year, status.reason) for status in report.year_statuses] == [
        (2020, "transport_error"),
        (2021, "graphql_error"),
        (2022, None),
        (2023, None),
        (2024, None),
    ]
    assert "year 2021" in caplog.text
    assert "ghp_secret" not in caplog.text


def test_compute_report_raises_when_no_year_available(app_settings: Settings) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"data": {"user": None}})

    with pytest.raises(NoContributionDataError):
        compute_report(
            "ghost",
            "token",
            3,
            app_settings=app_settings,
            today=TODAY,
            transport=httpx.MockTransport(handler),
        )


def test_compute_report_raises_invalid_token_when_every_year_rejected(
    app_settings: Settings,
) -> None:
    with pytest.raises(InvalidGitHubTokenError):
        compute_report(
            "octocat",
            "revoked",
            3,
            app_settings=app_settings,
            today=TODAY,
            transport=httpx.MockTransport(lambda request: httpx.Response(401)),
        )


def test_compute_report_fails_whole_request_on_malformed_dates(
    app_settings: Settings,
) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        response = calendar_response(year_of(request), 1)
        payload = response.json()
        calendar = payload["data"]["user"]["contributionsCollection"][
            "contributionCalendar"
        ]
        calendar["weeks"][0]["contributionDays"][0]["date"] = "not-a-date"
        return httpx.Response(200, json=payload)

    with pytest.raises(MalformedCalendarError):
        compute_report(
            "octocat",
            "token",
            2,
            app_settings=app_settings,
            today=TODAY,
            transport=httpx.MockTransport(handler),
        )
