from datetime import date

from pydantic import BaseModel
from pydantic import ConfigDict
from pydantic.alias_generators import to_camel

from backend.services.contributions_service import ContributionReport


class CamelModel(BaseModel):
    """Base model serialized with camelCase keys, as the web client expects."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ContributionsRequest(BaseModel):
    """Report request body; `token` may instead come from a Bearer header."""

    username: str | None = None
    token: str | None = None
    years: int | None = None


class ContributionDay(CamelModel):
    date: date
    contribution_count: int
    contribution_level: str


class ContributionWeek(CamelModel):
    contribution_days: list[ContributionDay]


class ContributionCalendar(CamelModel):
    total_contributions: int
    weeks: list[ContributionWeek]


class YearContributions(CamelModel):
    """One fetched year; `complete` is false for the running calendar year."""

    year: int
    total: int
    complete: bool
    calendar: ContributionCalendar


class MonthCount(CamelModel):
    month: str
    count: int


class MonthlyBucket(CamelModel):
    year: int
    months: list[MonthCount]


class BestYear(CamelModel):
    year: int
    total: int


class ContributionStats(CamelModel):
    total_contributions: int
    average_per_year: int
    best_year: BestYear
    years_active: int


class YearStatus(CamelModel):
    year: int
    status: str
    reason: str | None = None


class ContributionReportResponse(CamelModel):
    """Multi-year contribution report payload."""

    username: str
    years: list[YearContributions]
    monthly_data: list[MonthlyBucket]
    stats: ContributionStats
    year_statuses: list[YearStatus]

    @classmethod
    def from_report(
        cls, report: ContributionReport, current_year: int
    ) -> "ContributionReportResponse":
        return cls(
            username=report.username,
            years=[
                YearContributions(
                    year=item.year,
                    total=item.total,
                    complete=item.year < current_year,
                    calendar=ContributionCalendar(
                        total_contributions=item.calendar.total_contributions,
                        weeks=[
                            ContributionWeek(
                                contribution_days=[
                                    ContributionDay(
                                        date=day.date,
                                        contribution_count=day.count,
                                        contribution_level=day.level,
                                    )
                                    for day in week.days
                                ]
                            )
                            for week in item.calendar.weeks
                        ],
                    ),
                )
                for item in report.years
            ],
            monthly_data=[
                MonthlyBucket(
                    year=bucket.year,
                    months=[
                        MonthCount(month=month.month, count=month.count)
                        for month in bucket.months
                    ],
                )
                for bucket in report.monthly_data
            ],
            stats=ContributionStats(
                total_contributions=report.stats.total_contributions,
                average_per_year=report.stats.average_per_year,
                best_year=BestYear(
                    year=report.stats.best_year.year,
                    total=report.stats.best_year.total,
                ),
                years_active=report.stats.years_active,
            ),
            year_statuses=[
                YearStatus(year=result.year, status=result.status, reason=result.reason)
                for result in report.year_statuses
            ],
        )
