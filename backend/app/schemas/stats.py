from datetime import datetime

from pydantic import BaseModel

from app.services.stats import LeaveStatistics, StatsPeriod


class GroupCount(BaseModel):
    key: str
    count: int


class LeaveStatisticsOut(BaseModel):
    period: StatsPeriod
    since: datetime | None = None
    total: int
    by_status: dict[str, int]
    by_type: list[GroupCount]
    by_duration: list[GroupCount]
    total_responses: int
    average_response_seconds: float

    @classmethod
    def from_stats(cls, stats: LeaveStatistics) -> "LeaveStatisticsOut":
        return cls(
            period=stats.period,
            since=stats.since,
            total=stats.total,
            by_status=stats.by_status,
            by_type=[GroupCount(key=key, count=count) for key, count in stats.by_type],
            by_duration=[GroupCount(key=key, count=count) for key, count in stats.by_duration],
            total_responses=stats.total_responses,
            average_response_seconds=stats.average_response_seconds,
        )


class TeacherStatisticsOut(BaseModel):
    teacher_id: str
    total_leaves: int
    by_status: dict[str, int]
    substitutions: int

    model_config = {"from_attributes": True}
