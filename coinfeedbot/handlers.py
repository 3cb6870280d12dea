"""Telegram message and callback handlers used by the bot.

Per-chat state lives in a :class:`~coinfeedbot.state.StateStore` kept in
``context.bot_data["store"]`` and triggers are armed through the
:class:`~coinfeedbot.scheduler.DeliveryScheduler` in
``context.bot_data["timers"]``.
"""

from typing import Optional

from telegram import (
    Bot,
    CallbackQuery,
    InlineKeyboardButton,
    InlineKeyboardMarkup,
    KeyboardButton,
    ReplyKeyboardMarkup,
    Update,
)
from telegram.constants import ChatAction
from telegram.ext import ContextTypes

from . import api, charts, config
from .formatting import (
    ERROR_EMOJI,
    FAIL_EMOJI,
    FETCH_ERROR_TEXT,
    NO_COINS_TEXT,
    SUCCESS_EMOJI,
    TRY_LATER_TEXT,
    coin_label,
    format_prices,
)
from .scheduler import DeliveryScheduler
from .state import (
    ChatState,
    InputMode,
    Page,
    ScheduleKind,
    ScheduleStage,
    StateStore,
    TimeOfDay,
    Weekday,
    paginate,
    search_coins,
)

WELCOME_EMOJI = "\U0001f44b"
CHART_EMOJI = "\U0001f4ca"
CLOCK_EMOJI = "\U0001f552"
TIMER_EMOJI = "⏱️"
TRASH_EMOJI = "\U0001f5d1️"
SEARCH_EMOJI = "\U0001f50e"
STOP_EMOJI = "⏹️"

NOW_LABEL = "\U0001f4b0 Get rates now"
CHART_LABEL = f"{CHART_EMOJI} Chart"
INTERVAL_LABEL = f"{TIMER_EMOJI} Set interval"
SCHEDULE_LABEL = f"{CLOCK_EMOJI} Set time"
CURRENCIES_LABEL = "\U0001f4b3 Choose currencies"
NEEDS_COINS = (INTERVAL_LABEL, SCHEDULE_LABEL, CHART_LABEL)

EXPIRED_TEXT = "This list is out of date, open it again"
TIME_PROMPT = "Enter the time as HH:MM:SS, for example 09:00:00"
INTERVAL_PROMPT = "Enter the interval as HH:MM:SS, for example 02:30:00."

COMMANDS: list[tuple[str, str]] = [("start", "Show menu")]

DAY_ROWS = [
    [Weekday.MONDAY, Weekday.TUESDAY, Weekday.WEDNESDAY],
    [Weekday.THURSDAY, Weekday.FRIDAY, Weekday.SATURDAY],
    [Weekday.SUNDAY],
]
PERIOD_NAMES = {7: "7 days", 30: "30 days", 365: "1 year"}
TIME_MODES = (InputMode.SETTING_INTERVAL, InputMode.SETTING_SCHEDULE_TIME)

# picker sources carried in callback data
TOP_SOURCE = "top"
FOUND_SOURCE = "found"
PICKER_SOURCES = (TOP_SOURCE, FOUND_SOURCE)


def get_store(context: ContextTypes.DEFAULT_TYPE) -> StateStore:
    return context.bot_data["store"]


def get_timers(context: ContextTypes.DEFAULT_TYPE) -> DeliveryScheduler:
    return context.bot_data["timers"]


def get_keyboard() -> ReplyKeyboardMarkup:
    """Return the main reply keyboard."""
    keyboard = [
        [KeyboardButton(NOW_LABEL), KeyboardButton(CHART_LABEL)],
        [KeyboardButton(INTERVAL_LABEL), KeyboardButton(SCHEDULE_LABEL)],
        [KeyboardButton(CURRENCIES_LABEL)],
    ]
    return ReplyKeyboardMarkup(keyboard, resize_keyboard=True)


def coins_keyboard(
    page: Page, selected: list[str], source: str = TOP_SOURCE
) -> InlineKeyboardMarkup:
    """Return a coin picker for ``page`` with checkmarks for ``selected``.

    Button data names ``source`` and the page number so a press can rebuild
    the same list without relying on what the chat opened since.
    """
    buttons = [
        [
            InlineKeyboardButton(
                coin_label(coin.symbol, coin.name, coin.id in selected),
                callback_data=f"coin:{source}:{page.number}:{coin.id}",
            )
        ]
        for coin in page.items
    ]
    nav = []
    if page.has_prev:
        nav.append(
            InlineKeyboardButton(
                "⬅️ Back", callback_data=f"page:{source}:{page.number - 1}"
            )
        )
    if page.has_next:
        nav.append(
            InlineKeyboardButton(
                "➡️ Next", callback_data=f"page:{source}:{page.number + 1}"
            )
        )
    if nav:
        buttons.append(nav)
    buttons.append(
        [InlineKeyboardButton(f"{SEARCH_EMOJI} Search", callback_data="search")]
    )
    buttons.append(
        [InlineKeyboardButton(f"{SUCCESS_EMOJI} Confirm", callback_data="confirm")]
    )
    return InlineKeyboardMarkup(buttons)


def days_keyboard(days: set[Weekday]) -> InlineKeyboardMarkup:
    buttons = [
        [
            InlineKeyboardButton(
                f"{SUCCESS_EMOJI} {day.short}" if day in days else day.short,
                callback_data=f"day:{day.value}",
            )
            for day in row
        ]
        for row in DAY_ROWS
    ]
    buttons.append(
        [
            InlineKeyboardButton(
                f"{SUCCESS_EMOJI} Confirm days", callback_data="days:confirm"
            )
        ]
    )
    return InlineKeyboardMarkup(buttons)


def schedule_keyboard() -> InlineKeyboardMarkup:
    return InlineKeyboardMarkup(
        [
            [
                InlineKeyboardButton(
                    "\U0001f4c5 Every day", callback_data="schedule:everyday"
                )
            ],
            [
                InlineKeyboardButton(
                    "\U0001f5d3️ Choose days", callback_data="schedule:days"
                )
            ],
            [
                InlineKeyboardButton(
                    f"{TRASH_EMOJI} Delete schedule", callback_data="schedule:clear"
                )
            ],
        ]
    )


def interval_keyboard() -> InlineKeyboardMarkup:
    return InlineKeyboardMarkup(
        [
            [
                InlineKeyboardButton(
                    f"{TRASH_EMOJI} Delete interval", callback_data="interval:clear"
                )
            ]
        ]
    )


def chart_coins_keyboard(coins: list[str]) -> InlineKeyboardMarkup:
    return InlineKeyboardMarkup(
        [
            [InlineKeyboardButton(coin.upper(), callback_data=f"chartcoin:{coin}")]
            for coin in coins
        ]
    )


def chart_periods_keyboard(coin: str) -> InlineKeyboardMarkup:
    return InlineKeyboardMarkup(
        [
            [
                InlineKeyboardButton(
                    PERIOD_NAMES.get(days, f"{days} days"),
                    callback_data=f"chart:{coin}:{days}",
                )
                for days in config.CHART_PERIODS
            ]
        ]
    )


async def build_price_message(
    coins: list[str], *, user: Optional[int] = None
) -> str:
    """Return the price digest text for ``coins``."""
    if not coins:
        return NO_COINS_TEXT
    data = await api.get_prices(coins, user=user)
    if data is None:
        return FETCH_ERROR_TEXT
    return format_prices(coins, data) or TRY_LATER_TEXT


async def deliver_now(bot: Bot, store: StateStore, chat_id: int) -> str:
    """Send the current prices of the chat's confirmed coins.

    Used by interval and cron jobs as well as on-demand requests.
    """
    chat = store.get(chat_id)
    text = await build_price_message(list(chat.confirmed), user=chat_id)
    await bot.send_message(chat_id=chat_id, text=text)
    return text


async def start(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Send a welcome message and show the main keyboard."""
    await update.message.reply_text(
        f"{WELCOME_EMOJI} Hi! Choose an action:", reply_markup=get_keyboard()
    )


async def show_coin_picker(
    update: Update, context: ContextTypes.DEFAULT_TYPE
) -> None:
    chat = get_store(context).get(update.effective_chat.id)
    coins = await api.get_top_coins()
    if not coins:
        await update.message.reply_text(TRY_LATER_TEXT)
        return
    chat.begin_selection()
    page = paginate(coins, 0, config.PAGE_SIZE)
    await update.message.reply_text(
        f"Top {len(coins)} currencies by market cap:",
        reply_markup=coins_keyboard(page, chat.current_view()),
    )


async def handle_time(
    update: Update, chat: ChatState, context: ContextTypes.DEFAULT_TYPE
) -> None:
    """Apply a ``HH:MM:SS`` entry to the chat's pending interval or schedule.

    The input mode stays active on rejection so the user can retry.
    """
    text = update.message.text.strip()
    if chat.input_mode is InputMode.SETTING_INTERVAL:
        try:
            seconds = config.parse_interval(text)
        except ValueError:
            await update.message.reply_text(
                f"{ERROR_EMOJI} Invalid interval. Use HH:MM:SS "
                "(minimum 00:00:01, maximum 23:59:59)."
            )
            return
        get_timers(context).set_interval(chat, seconds)
        chat.clear_input()
        await update.message.reply_text(
            f"{TIMER_EMOJI} Prices will be sent every {text}"
        )
        return

    try:
        hour, minute, second = config.parse_time(text)
    except ValueError:
        await update.message.reply_text(
            f"{ERROR_EMOJI} Invalid time. Maximum is 23:59:59"
        )
        return
    stage = chat.schedule_stage
    if stage is ScheduleStage.DRAFT_KIND_CHOSEN:
        await update.message.reply_text(f"{ERROR_EMOJI} Choose at least one day")
        return
    if stage is not ScheduleStage.DRAFT_TIME_PENDING:
        await update.message.reply_text(
            f"{ERROR_EMOJI} Choose the schedule type first"
        )
        return
    time = TimeOfDay(hour, minute, second)
    spec = get_timers(context).commit_schedule(chat, time)
    chat.clear_input()
    await update.message.reply_text(
        f"{CLOCK_EMOJI} Prices scheduled {spec.describe()}"
    )


async def handle_search(update: Update, chat: ChatState) -> None:
    query = update.message.text.strip()
    coins = await api.get_all_coins()
    found = search_coins(coins, query, config.SEARCH_LIMIT)
    if not found:
        await update.message.reply_text("Nothing found \U0001f614")
        return
    page = paginate(found, 0, config.PAGE_SIZE)
    message = await update.message.reply_text(
        f'Search results for "{query}":',
        reply_markup=coins_keyboard(page, chat.current_view(), FOUND_SOURCE),
    )
    chat.remember_results(message.message_id, found)


async def menu(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle reply keyboard labels and free-text input."""
    if not update.message or not update.message.text:
        return
    text = update.message.text.strip()
    chat_id = update.effective_chat.id
    chat = get_store(context).get(chat_id)

    if chat.input_mode is InputMode.SEARCH:
        chat.clear_input()
        await handle_search(update, chat)
    elif text == NOW_LABEL:
        await context.bot.send_chat_action(
            chat_id=chat_id, action=ChatAction.TYPING
        )
        await deliver_now(context.bot, get_store(context), chat_id)
    elif text == CURRENCIES_LABEL:
        await show_coin_picker(update, context)
    elif text in NEEDS_COINS and not chat.confirmed:
        await update.message.reply_text(NO_COINS_TEXT)
    elif text == INTERVAL_LABEL:
        chat.input_mode = InputMode.SETTING_INTERVAL
        await update.message.reply_text(
            INTERVAL_PROMPT, reply_markup=interval_keyboard()
        )
    elif text == SCHEDULE_LABEL:
        prompt = "Choose the schedule type:"
        if chat.schedule_stage is ScheduleStage.COMMITTED:
            prompt = f"Current schedule: {chat.schedule.describe()}\n{prompt}"
        chat.input_mode = InputMode.SETTING_SCHEDULE_TIME
        chat.begin_schedule()
        await update.message.reply_text(prompt, reply_markup=schedule_keyboard())
    elif text == CHART_LABEL:
        await update.message.reply_text(
            "Choose a currency for the chart:",
            reply_markup=chart_coins_keyboard(chat.confirmed),
        )
    elif config.TIME_PATTERN.match(text):
        if chat.input_mode not in TIME_MODES:
            return
        if not chat.confirmed:
            await update.message.reply_text(NO_COINS_TEXT)
            return
        await handle_time(update, chat, context)


async def send_chart(
    context: ContextTypes.DEFAULT_TYPE, chat_id: int, coin: str, days: int
) -> None:
    """Send a price chart for ``coin`` over ``days`` to ``chat_id``."""
    prices = await api.get_market_chart(coin, days, user=chat_id)
    if not prices:
        await context.bot.send_message(
            chat_id, f"{FAIL_EMOJI} Could not build the chart."
        )
        return
    await context.bot.send_chat_action(
        chat_id=chat_id, action=ChatAction.UPLOAD_PHOTO
    )
    image = charts.render_price_chart(coin, prices)
    await context.bot.send_photo(
        chat_id, image, caption=f"{CHART_EMOJI} {coin.upper()} for {days} days"
    )


async def update_picker(
    query: CallbackQuery, chat: ChatState, action: str, arg: str
) -> None:
    """Turn a page of, or toggle a coin in, the picker that sent ``query``.

    ``arg`` is ``SOURCE:PAGE`` for page presses and ``SOURCE:PAGE:COIN`` for
    coin presses.
    """
    source, _, rest = arg.partition(":")
    number, _, coin_id = rest.partition(":")
    if (
        source not in PICKER_SOURCES
        or not number.isdigit()
        or (action == "coin") != bool(coin_id)
    ):
        config.logger.debug("ignoring picker data %r", arg)
        await query.answer()
        return
    if source == TOP_SOURCE:
        coins = await api.get_top_coins()
    else:
        coins = chat.found.get(query.message.message_id, [])
    if not coins:
        await query.answer(EXPIRED_TEXT)
        return

    text = None
    if action == "coin":
        chat.toggle(coin_id)
        chosen = ", ".join(c.upper() for c in chat.current_view()) or "nothing"
        text = f"Selected: {chosen}"
    page = paginate(coins, int(number), config.PAGE_SIZE)
    await query.edit_message_reply_markup(
        reply_markup=coins_keyboard(page, chat.current_view(), source)
    )
    await query.answer(text)


async def button(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle inline keyboard button callbacks."""
    query = update.callback_query
    data = query.data or ""
    chat_id = query.message.chat_id
    chat = get_store(context).get(chat_id)
    timers = get_timers(context)
    action, _, arg = data.partition(":")

    if action in ("page", "coin") and arg:
        await update_picker(query, chat, action, arg)
    elif data == "confirm":
        if not chat.confirm():
            await query.answer(f"{ERROR_EMOJI} Nothing to confirm")
            return
        await query.answer(f"{SUCCESS_EMOJI} Selection saved!")
        await deliver_now(context.bot, get_store(context), chat_id)
    elif data == "search":
        chat.input_mode = InputMode.SEARCH
        await query.answer()
        await context.bot.send_message(chat_id, "Enter a coin name or symbol:")
    elif action == "chartcoin" and arg:
        await query.answer()
        await context.bot.send_message(
            chat_id,
            f"Choose the period for {arg.upper()}:",
            reply_markup=chart_periods_keyboard(arg),
        )
    elif action == "chart" and arg:
        coin, _, days = arg.rpartition(":")
        if not coin or not days.isdigit():
            await query.answer()
            return
        await query.answer(f"Building chart for {coin}...")
        await send_chart(context, chat_id, coin, int(days))
    elif data == "interval:clear":
        if timers.clear_interval(chat):
            await query.answer(f"{STOP_EMOJI} Interval deleted")
            await context.bot.send_message(
                chat_id, "Interval updates are no longer sent."
            )
        else:
            await query.answer(f"{ERROR_EMOJI} There was no interval")
    elif data == "schedule:clear":
        if timers.clear_schedule(chat):
            await query.answer(f"{TRASH_EMOJI} Schedule deleted")
            await context.bot.send_message(
                chat_id, "Scheduled updates are no longer sent."
            )
        else:
            await query.answer(f"{ERROR_EMOJI} There was no schedule")
    elif data == "schedule:everyday":
        chat.ensure_draft().kind = ScheduleKind.EVERY_DAY
        chat.input_mode = InputMode.SETTING_SCHEDULE_TIME
        await query.answer("Selected: every day")
        await context.bot.send_message(chat_id, TIME_PROMPT)
    elif data == "schedule:days":
        draft = chat.ensure_draft()
        draft.kind = ScheduleKind.SPECIFIC_DAYS
        chat.input_mode = InputMode.SETTING_SCHEDULE_TIME
        await query.answer("Selected: choose days")
        await context.bot.send_message(
            chat_id, "Choose the days:", reply_markup=days_keyboard(draft.days)
        )
    elif action == "day" and arg.isdigit() and int(arg) <= Weekday.SATURDAY:
        draft = chat.ensure_draft()
        draft.toggle_day(Weekday(int(arg)))
        chosen = ", ".join(d.short for d in sorted(draft.days)) or "nothing"
        await query.edit_message_reply_markup(
            reply_markup=days_keyboard(draft.days)
        )
        await query.answer(f"Days selected: {chosen}")
    elif data == "days:confirm":
        draft = chat.draft
        if draft is None or not draft.days:
            await query.answer(f"{ERROR_EMOJI} Choose at least one day")
            return
        chat.input_mode = InputMode.SETTING_SCHEDULE_TIME
        await query.answer("Days saved")
        await context.bot.send_message(chat_id, TIME_PROMPT)
    else:
        config.logger.debug("ignoring callback %r from chat %s", data, chat_id)
        await query.answer()
