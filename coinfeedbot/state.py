"""Per-chat selection and schedule state.

Everything here is plain data plus the transitions that do not involve a
timer. Arming and cancelling triggers lives in :mod:`coinfeedbot.scheduler`.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum, IntEnum
from typing import Optional, Sequence, TypeVar

from apscheduler.job import Job

from . import config
from .api import CoinRef

T = TypeVar("T")


class Weekday(IntEnum):
    """Day of week numbered the cron way, Sunday first."""

    SUNDAY = 0
    MONDAY = 1
    TUESDAY = 2
    WEDNESDAY = 3
    THURSDAY = 4
    FRIDAY = 5
    SATURDAY = 6

    @property
    def short(self) -> str:
        return self.name[:3].title()

    @property
    def cron_name(self) -> str:
        return self.name[:3].lower()


class ScheduleKind(Enum):
    EVERY_DAY = "everyday"
    SPECIFIC_DAYS = "days"


class InputMode(Enum):
    """What the next free-text message from a chat means."""

    SETTING_INTERVAL = "interval"
    SETTING_SCHEDULE_TIME = "schedule"
    SEARCH = "search"


class ScheduleStage(Enum):
    NO_SCHEDULE = "none"
    DRAFT_KIND_CHOSEN = "kind_chosen"
    DRAFT_TIME_PENDING = "time_pending"
    COMMITTED = "committed"


@dataclass(frozen=True)
class TimeOfDay:
    hour: int
    minute: int
    second: int

    def __str__(self) -> str:
        return f"{self.hour:02d}:{self.minute:02d}:{self.second:02d}"


@dataclass(frozen=True)
class ScheduleSpec:
    kind: ScheduleKind
    days: frozenset[Weekday]
    time: TimeOfDay

    def describe(self) -> str:
        if self.kind is ScheduleKind.EVERY_DAY:
            when = "every day"
        else:
            when = ", ".join(d.short for d in sorted(self.days))
        return f"{when} at {self.time}"


@dataclass
class ScheduleDraft:
    kind: Optional[ScheduleKind] = None
    days: set[Weekday] = field(default_factory=set)
    time: Optional[TimeOfDay] = None

    def toggle_day(self, day: Weekday) -> None:
        if day in self.days:
            self.days.remove(day)
        else:
            self.days.add(day)

    @property
    def ready_for_time(self) -> bool:
        """Return ``True`` once only the time of day is missing."""
        if self.kind is ScheduleKind.EVERY_DAY:
            return True
        return self.kind is ScheduleKind.SPECIFIC_DAYS and bool(self.days)

    def promote(self, time: TimeOfDay) -> ScheduleSpec:
        if self.kind is None:
            raise ValueError("schedule type not chosen")
        if not self.ready_for_time:
            raise ValueError("no days chosen")
        self.time = time
        days: frozenset[Weekday] = frozenset()
        if self.kind is ScheduleKind.SPECIFIC_DAYS:
            days = frozenset(self.days)
        return ScheduleSpec(self.kind, days, time)


@dataclass
class Page:
    items: list
    number: int
    has_prev: bool
    has_next: bool


def paginate(items: Sequence[T], page: int, per_page: int) -> Page:
    """Return the ``page``-th slice of ``items`` without modifying them."""
    page = max(page, 0)
    start = page * per_page
    end = start + per_page
    return Page(list(items[start:end]), page, page > 0, end < len(items))


def search_coins(coins: Sequence[CoinRef], query: str, limit: int) -> list[CoinRef]:
    """Return up to ``limit`` coins whose symbol or name contains ``query``."""
    needle = query.strip().lower()
    found: list[CoinRef] = []
    for coin in coins:
        if needle in coin.symbol.lower() or needle in coin.name.lower():
            found.append(coin)
            if len(found) >= limit:
                break
    return found


@dataclass
class ChatState:
    chat_id: int
    confirmed: list[str] = field(default_factory=list)
    pending: Optional[list[str]] = None
    found: dict[int, list[CoinRef]] = field(default_factory=dict)
    input_mode: Optional[InputMode] = None
    interval: Optional[int] = None
    interval_job: Optional[Job] = None
    schedule: Optional[ScheduleSpec] = None
    schedule_job: Optional[Job] = None
    draft: Optional[ScheduleDraft] = None

    # selection dialog

    @property
    def selecting(self) -> bool:
        return self.pending is not None

    def begin_selection(self) -> None:
        self.pending = list(self.confirmed)

    def toggle(self, coin_id: str) -> bool:
        """Flip ``coin_id`` in the pending selection and return its new state."""
        if self.pending is None:
            self.pending = []
        if coin_id in self.pending:
            self.pending.remove(coin_id)
            return False
        self.pending.append(coin_id)
        return True

    def confirm(self) -> bool:
        if self.pending is None:
            return False
        self.confirmed = self.pending
        self.pending = None
        return True

    def current_view(self) -> list[str]:
        return self.pending if self.pending is not None else self.confirmed

    def remember_results(self, message_id: int, coins: Sequence[CoinRef]) -> None:
        """Keep search results for the picker sent as ``message_id``."""
        self.found[message_id] = list(coins)
        while len(self.found) > config.KEPT_SEARCHES:
            del self.found[next(iter(self.found))]

    # schedule dialog

    def begin_schedule(self) -> ScheduleDraft:
        self.draft = ScheduleDraft()
        return self.draft

    def ensure_draft(self) -> ScheduleDraft:
        if self.draft is None:
            self.draft = ScheduleDraft()
        return self.draft

    @property
    def schedule_stage(self) -> ScheduleStage:
        if self.draft is not None:
            if self.draft.ready_for_time:
                return ScheduleStage.DRAFT_TIME_PENDING
            if self.draft.kind is not None:
                return ScheduleStage.DRAFT_KIND_CHOSEN
        if self.schedule is not None:
            return ScheduleStage.COMMITTED
        return ScheduleStage.NO_SCHEDULE

    def clear_input(self, mode: Optional[InputMode] = None) -> None:
        """Reset the input mode, only if it equals ``mode`` when given."""
        if mode is None or self.input_mode is mode:
            self.input_mode = None


class StateStore:
    """Table of chat ID to :class:`ChatState`, created on first access."""

    def __init__(self) -> None:
        self._chats: dict[int, ChatState] = {}

    def get(self, chat_id: int) -> ChatState:
        chat = self._chats.get(chat_id)
        if chat is None:
            chat = self._chats[chat_id] = ChatState(chat_id)
        return chat

    def __contains__(self, chat_id: int) -> bool:
        return chat_id in self._chats

    def __len__(self) -> int:
        return len(self._chats)
