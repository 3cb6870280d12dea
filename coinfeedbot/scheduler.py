"""Arm and cancel the per-chat delivery triggers."""

from typing import Awaitable, Callable

from apscheduler.job import Job
from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from . import config
from .state import ChatState, InputMode, ScheduleKind, ScheduleSpec, TimeOfDay

Deliver = Callable[[int], Awaitable[None]]


def build_trigger(spec: ScheduleSpec, timezone: str = config.TIMEZONE) -> CronTrigger:
    """Return a cron trigger firing at ``spec.time`` on the chosen weekdays."""
    if spec.kind is ScheduleKind.EVERY_DAY:
        day_of_week = "*"
    else:
        day_of_week = ",".join(d.cron_name for d in sorted(spec.days))
    return CronTrigger(
        day_of_week=day_of_week,
        hour=spec.time.hour,
        minute=spec.time.minute,
        second=spec.time.second,
        timezone=timezone,
    )


def _cancel(job: Job) -> None:
    try:
        job.remove()
    except JobLookupError:
        config.logger.debug("job %s already gone", job.id)


class DeliveryScheduler:
    """Own the interval and cron jobs that call ``deliver`` for a chat.

    The job handles are kept on the :class:`ChatState`; only this class
    creates or removes them so each chat has at most one job of each kind.
    """

    def __init__(self, scheduler: AsyncIOScheduler, deliver: Deliver) -> None:
        self.scheduler = scheduler
        self.deliver = deliver

    def set_interval(self, chat: ChatState, seconds: int) -> Job:
        if seconds <= 0:
            raise ValueError("interval must be positive")
        self.clear_interval(chat)
        chat.interval_job = self.scheduler.add_job(
            self.deliver,
            "interval",
            seconds=seconds,
            args=(chat.chat_id,),
            id=f"interval:{chat.chat_id}",
            coalesce=True,
        )
        chat.interval = seconds
        config.logger.info("chat %s interval set to %ss", chat.chat_id, seconds)
        return chat.interval_job

    def clear_interval(self, chat: ChatState) -> bool:
        job = chat.interval_job
        chat.interval_job = None
        chat.interval = None
        if job is None:
            return False
        _cancel(job)
        config.logger.info("chat %s interval cleared", chat.chat_id)
        return True

    def commit_schedule(self, chat: ChatState, time: TimeOfDay) -> ScheduleSpec:
        """Promote the chat's draft and arm its cron trigger.

        Raises ``ValueError`` when there is no draft or it is incomplete; in
        that case nothing is changed.
        """
        if chat.draft is None:
            raise ValueError("no schedule in progress")
        spec = chat.draft.promote(time)
        self._cancel_schedule_job(chat)
        chat.schedule = spec
        chat.draft = None
        chat.schedule_job = self.scheduler.add_job(
            self.deliver,
            build_trigger(spec),
            args=(chat.chat_id,),
            id=f"schedule:{chat.chat_id}",
            coalesce=True,
        )
        config.logger.info("chat %s scheduled %s", chat.chat_id, spec.describe())
        return spec

    def clear_schedule(self, chat: ChatState) -> bool:
        """Drop the schedule, its trigger and any draft.

        Returns ``False`` when there was no committed schedule.
        """
        existed = chat.schedule is not None
        self._cancel_schedule_job(chat)
        chat.schedule = None
        chat.draft = None
        chat.clear_input(InputMode.SETTING_SCHEDULE_TIME)
        if existed:
            config.logger.info("chat %s schedule cleared", chat.chat_id)
        return existed

    def _cancel_schedule_job(self, chat: ChatState) -> None:
        job = chat.schedule_job
        chat.schedule_job = None
        if job is not None:
            _cancel(job)
