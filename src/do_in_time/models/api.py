"""API request/response schemas for FastAPI endpoints."""

import dataclasses
from datetime import datetime

from pydantic import AwareDatetime, BaseModel, ConfigDict

from do_in_time.models.task import (
    BrowserType,
    ExecutionAction,
    ExecutionStatus,
    RepeatConfig,
    RepeatInterval,
    Task,
    TaskStatus,
)


class RepeatConfigSchema(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    interval: RepeatInterval
    end_after: int | None = None
    end_date: AwareDatetime | None = None

    def to_repeat_config(self) -> RepeatConfig:
        return RepeatConfig(
            interval=self.interval,
            end_after=self.end_after,
            end_date=self.end_date,
        )


# Task schemas
class TaskCreate(BaseModel):
    name: str
    browser: BrowserType
    start_time: AwareDatetime
    close_time: AwareDatetime | None = None
    timezone: str = "UTC"
    browser_profile: str | None = None
    url: str | None = None
    allow_close_all: bool = False
    repeat_config: RepeatConfigSchema | None = None

    def to_task(self) -> Task:
        return Task(
            name=self.name,
            browser=self.browser,
            start_time=self.start_time,
            close_time=self.close_time,
            timezone=self.timezone,
            browser_profile=self.browser_profile,
            url=self.url,
            allow_close_all=self.allow_close_all,
            repeat_config=self.repeat_config.to_repeat_config() if self.repeat_config else None,
        )


class TaskUpdate(BaseModel):
    """Partial update. Fields left out keep their stored value; an explicit
    null clears optional fields (repeat_config: null makes the task one-shot)."""

    name: str | None = None
    browser: BrowserType | None = None
    start_time: AwareDatetime | None = None
    close_time: AwareDatetime | None = None
    timezone: str | None = None
    browser_profile: str | None = None
    url: str | None = None
    allow_close_all: bool | None = None
    repeat_config: RepeatConfigSchema | None = None

    def apply_to(self, task: Task) -> Task:
        """Return a copy of task with the submitted fields applied."""
        required = {"name", "browser", "start_time", "timezone", "allow_close_all"}
        changes = {
            field: getattr(self, field)
            for field in self.model_fields_set - {"repeat_config"}
            if not (field in required and getattr(self, field) is None)
        }
        updated = dataclasses.replace(task, **changes)

        if "repeat_config" in self.model_fields_set:
            updated.repeat_config = (
                self.repeat_config.to_repeat_config() if self.repeat_config else None
            )
        return updated


class TaskResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    browser: BrowserType
    browser_profile: str | None
    url: str | None
    allow_close_all: bool
    start_time: datetime
    close_time: datetime | None
    timezone: str
    repeat_config: RepeatConfigSchema | None
    status: TaskStatus
    execution_count: int
    next_open_execution: datetime | None
    next_close_execution: datetime | None
    last_open_execution: datetime | None
    last_close_execution: datetime | None
    created_at: datetime | None
    updated_at: datetime | None


class TaskExecutionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    task_id: int
    action: ExecutionAction
    executed_at: datetime
    status: ExecutionStatus
    error_message: str | None = None


# Scheduler schemas
class SchedulerStatusResponse(BaseModel):
    running: bool


# Browser schemas
class InstalledBrowsersResponse(BaseModel):
    browsers: list[BrowserType]
    default: BrowserType | None = None
