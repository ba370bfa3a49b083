import asyncio
import logging
import math
from dataclasses import replace
from datetime import datetime, timezone
from typing import Optional

from aiogram import Bot, F, Router, types
from aiogram.exceptions import TelegramBadRequest
from aiogram.filters import Command, CommandObject, CommandStart, StateFilter
from aiogram.fsm.context import FSMContext
from aiogram.fsm.state import State, StatesGroup

from db import Database
from ratings import texts, ui
from ratings.config import Settings
from ratings.models import MAX_FEEDBACK_LENGTH, Review
from ratings.stats import (
    InvalidReviewError,
    build_ratings,
    build_workshop_rows,
    compute_workshop_stats,
    normalize_on_time,
    parse_date,
    resolve_rating_type,
    season_bounds,
    voted_today,
)

REVIEWS_PER_PAGE = 5
LAST_REVIEWS_LIMIT = 3
SEND_TIMEOUT_SECONDS = 3.0

router = Router()


class FeedbackForm(StatesGroup):
    workshop = State()
    quality = State()
    on_time = State()
    communication = State()
    text = State()
    confirm = State()


class AddWorkshopForm(StatesGroup):
    name = State()
    address = State()
    description = State()
    confirm = State()


class SearchUserForm(StatesGroup):
    query = State()


async def db_call(func, *args):
    return await asyncio.to_thread(func, *args)


def _callback_parts(callback: types.CallbackQuery) -> list[str]:
    return (callback.data or "").split("|")


def _callback_id(callback: types.CallbackQuery, index: int = 1) -> Optional[int]:
    parts = _callback_parts(callback)
    if len(parts) <= index or not parts[index].isdigit():
        return None
    return int(parts[index])


async def notify_admins(bot: Bot, database: Database, settings: Settings, review: Review) -> None:
    if not settings.admin_chat_id:
        return
    workshop = await db_call(database.get_workshop_by_name, review.workshop)
    reviews = await db_call(database.list_feedback, review.workshop)
    text = texts.format_admin_notification(review, workshop, compute_workshop_stats(reviews))
    try:
        await asyncio.wait_for(
            bot.send_message(
                settings.admin_chat_id,
                text,
                parse_mode="HTML",
                disable_web_page_preview=True,
            ),
            timeout=SEND_TIMEOUT_SECONDS,
        )
    except Exception as exc:
        logging.warning("admin notification failed: %s", exc)


async def send_chunks(message: types.Message, header: str, reviews: list[Review]) -> None:
    entries = [texts.format_feedback_entry(review) for review in reviews]
    for chunk in texts.split_messages(header, entries):
        await message.answer(chunk, parse_mode="HTML")


async def _deny_non_admin(callback: types.CallbackQuery, settings: Settings) -> bool:
    if settings.is_admin(callback.from_user.id if callback.from_user else None):
        return False
    await callback.answer("У вас нет прав для выполнения этого действия.", show_alert=True)
    return True


# commands


@router.message(CommandStart())
async def cmd_start(message: types.Message, state: FSMContext, settings: Settings):
    if message.chat.type != "private":
        return
    await state.clear()
    await message.answer("Привет! Выберите действие:", reply_markup=ui.build_main_kb(settings.webapp_url))


@router.message(Command("cancel"))
async def cmd_cancel(message: types.Message, state: FSMContext, settings: Settings):
    await state.clear()
    await message.answer("Действие отменено.", reply_markup=ui.build_main_kb(settings.webapp_url))


@router.message(Command("app"))
async def cmd_app(message: types.Message, settings: Settings):
    kb = ui.build_launch_kb(settings.webapp_url)
    if kb is None:
        await message.answer("Mini App URL не настроен. Укажи WEBAPP_URL в переменных окружения.")
        return
    await message.answer("Откройте мини-приложение:", reply_markup=kb)


@router.message(Command("admin"))
async def cmd_admin(message: types.Message, state: FSMContext, settings: Settings):
    if not settings.is_admin(message.from_user.id if message.from_user else None):
        await message.answer("У вас нет прав доступа к панели администратора.")
        return
    await state.clear()
    await message.answer("🔐 Панель администратора\n\nВыберите действие:", reply_markup=ui.build_admin_kb())


@router.message(Command("delete_feedback"))
async def cmd_delete_feedback(message: types.Message, command: CommandObject, settings: Settings):
    if not settings.is_admin(message.from_user.id if message.from_user else None):
        await message.answer("У вас нет прав для удаления отзывов.")
        return
    raw = (command.args or "").strip()
    if not raw.isdigit():
        await message.answer("Пожалуйста, укажите ID отзыва.")
        return
    await message.answer(
        f"Вы уверены, что хотите удалить отзыв {raw}?",
        reply_markup=ui.build_delete_confirm_kb(int(raw)),
    )


@router.message(Command("set_admin_chat"))
async def cmd_set_admin_chat(message: types.Message, settings: Settings):
    if not settings.is_admin(message.from_user.id if message.from_user else None):
        await message.answer("У вас нет прав для выполнения этой команды.")
        return
    if message.chat.type != "supergroup":
        await message.answer(
            "Эта команда должна быть выполнена в супергруппе, которая будет использоваться как админский чат."
        )
        return
    await message.answer(f"ID этого чата: {message.chat.id}\nУкажите его в ADMIN_CHAT_ID.")


@router.message(Command("add_season"))
async def cmd_add_season(message: types.Message, command: CommandObject, database: Database, settings: Settings):
    if not settings.is_admin(message.from_user.id if message.from_user else None):
        await message.answer("У вас нет прав для выполнения этой команды.")
        return
    usage = (
        "Использование: /add_season Название; Описание; 2024-01-01; 2024-03-31\n"
        "Дату окончания можно не указывать, тогда сезон текущий."
    )
    parts = [part.strip() for part in (command.args or "").split(";")]
    if len(parts) < 3 or not parts[0]:
        await message.answer(usage)
        return
    name, description, start_raw = parts[0], parts[1], parts[2]
    end_raw = parts[3] if len(parts) > 3 else ""
    try:
        start = parse_date(start_raw)
        end = parse_date(end_raw) if end_raw else None
    except ValueError:
        await message.answer("Некорректная дата.\n\n" + usage)
        return
    if end is not None and end < start:
        await message.answer("Дата окончания раньше даты начала.")
        return
    start_at, end_at = season_bounds(start, end)
    result = await db_call(database.add_season, name, description, start_at, end_at)
    if result is None:
        await message.answer("База недоступна, попробуйте позже.")
    elif result == "overlap":
        await message.answer("Сезон пересекается с уже существующим.")
    else:
        await message.answer(f"Сезон «{name}» создан.")


@router.message(Command("delete_season"))
async def cmd_delete_season(message: types.Message, command: CommandObject, database: Database, settings: Settings):
    if not settings.is_admin(message.from_user.id if message.from_user else None):
        await message.answer("У вас нет прав для выполнения этой команды.")
        return
    raw = (command.args or "").strip()
    if not raw.isdigit():
        await message.answer("Использование: /delete_season ID")
        return
    deleted = await db_call(database.delete_season, int(raw))
    await message.answer("Сезон удалён." if deleted else "Сезон не найден.")


# main menu


@router.message(F.text == ui.LEAVE_FEEDBACK)
async def on_leave_feedback(message: types.Message, state: FSMContext, database: Database, settings: Settings):
    await state.clear()
    user_id = message.from_user.id if message.from_user else None
    if settings.daily_vote_limit and user_id is not None and not settings.is_admin(user_id):
        last_at = await db_call(database.last_feedback_at, user_id)
        if voted_today(last_at):
            await message.answer(
                "⚠️ Вы уже оставляли отзыв сегодня. Следующий будет доступен завтра.",
                reply_markup=ui.build_main_kb(settings.webapp_url),
            )
            return
    workshops = await db_call(database.list_workshops)
    if not workshops:
        await message.answer("В данный момент нет доступных мастерских.")
        return
    await state.set_state(FeedbackForm.workshop)
    await message.answer("Выберите мастерскую:", reply_markup=ui.build_workshops_kb(workshops, "workshop"))


@router.message(F.text == ui.WORKSHOPS_LIST)
async def on_workshops_list(message: types.Message, state: FSMContext, database: Database):
    await state.clear()
    workshops = await db_call(database.list_workshops)
    reviews = await db_call(database.list_feedback)
    rows = build_workshop_rows(workshops, reviews)
    await message.answer(
        texts.format_workshops_list(rows),
        parse_mode="HTML",
        reply_markup=ui.build_workshops_kb(workshops, "stats") if workshops else None,
    )


@router.message(F.text == ui.RATINGS_MENU)
async def on_ratings_menu(message: types.Message, state: FSMContext):
    await state.clear()
    await message.answer("Выберите действие:", reply_markup=ui.build_rating_menu_kb())


# feedback flow


@router.callback_query(FeedbackForm.workshop, F.data.startswith("workshop|"))
async def on_feedback_workshop(callback: types.CallbackQuery, state: FSMContext, database: Database):
    workshop_id = _callback_id(callback)
    workshop = await db_call(database.get_workshop, workshop_id) if workshop_id is not None else None
    if workshop is None:
        await callback.answer("Мастерская не найдена", show_alert=True)
        return
    await state.update_data(workshop=workshop.name)
    await state.set_state(FeedbackForm.quality)
    await callback.answer()
    await callback.message.edit_reply_markup(reply_markup=None)
    await callback.message.answer(f"Вы выбрали: {workshop.name}")
    await callback.message.answer("Оцените качество работы от 1 до 5:", reply_markup=ui.build_score_kb())


@router.message(FeedbackForm.quality, F.text)
async def on_feedback_quality(message: types.Message, state: FSMContext):
    if message.text not in ui.RATING_BUTTONS:
        await message.answer("Пожалуйста, выберите оценку от 1 до 5")
        return
    await state.update_data(quality=int(message.text))
    await state.set_state(FeedbackForm.on_time)
    await message.answer("Ремонт осуществлен в оговоренный срок?", reply_markup=ui.build_on_time_kb())


@router.message(FeedbackForm.on_time, F.text)
async def on_feedback_on_time(message: types.Message, state: FSMContext):
    try:
        on_time = normalize_on_time(message.text)
    except InvalidReviewError:
        await message.answer("Пожалуйста, выберите Да или Нет")
        return
    await state.update_data(on_time=on_time)
    await state.set_state(FeedbackForm.communication)
    await message.answer("Оцените коммуникацию с мастерской от 1 до 5:", reply_markup=ui.build_score_kb())


@router.message(FeedbackForm.communication, F.text)
async def on_feedback_communication(message: types.Message, state: FSMContext):
    if message.text not in ui.RATING_BUTTONS:
        await message.answer("Пожалуйста, выберите оценку от 1 до 5")
        return
    await state.update_data(communication=int(message.text))
    await state.set_state(FeedbackForm.text)
    await message.answer(
        f"Пожалуйста, напишите ваш отзыв о мастерской (максимум {MAX_FEEDBACK_LENGTH} символов)\n"
        "или нажмите кнопку \"Пропустить\" если не хотите оставлять текстовый отзыв:",
        reply_markup=ui.build_skip_kb(),
    )


def _draft_review(data: dict, user: Optional[types.User]) -> Review:
    return Review(
        user_id=user.id if user else None,
        first_name=(user.first_name or "") if user else "",
        last_name=(user.last_name or "") if user else "",
        username=(user.username or "") if user else "",
        workshop=data["workshop"],
        quality_rating=data["quality"],
        communication_rating=data["communication"],
        on_time=data["on_time"],
        text_feedback=data.get("text", ""),
    )


@router.message(StateFilter(FeedbackForm.text, FeedbackForm.confirm), F.text)
async def on_feedback_text(message: types.Message, state: FSMContext):
    text = message.text or ""
    if text == ui.SKIP_TEXT:
        text = ""
    elif len(text) > MAX_FEEDBACK_LENGTH:
        await message.answer(
            f"⚠️ Отзыв слишком длинный. Максимальная длина - {MAX_FEEDBACK_LENGTH} символов.\n"
            f"Ваш текст содержит {len(text)} символов.\n\n"
            "Пожалуйста, сократите отзыв и отправьте снова, или нажмите \"Пропустить\":",
            reply_markup=ui.build_skip_kb(),
        )
        return
    data = await state.update_data(text=text.strip())
    await state.set_state(FeedbackForm.confirm)
    await message.answer(
        texts.format_feedback_preview(_draft_review(data, message.from_user)),
        parse_mode="HTML",
        reply_markup=ui.build_confirm_kb("feedback"),
    )


@router.callback_query(FeedbackForm.confirm, F.data == "feedback|confirm")
async def on_feedback_confirm(
    callback: types.CallbackQuery,
    state: FSMContext,
    bot: Bot,
    database: Database,
    settings: Settings,
):
    data = await state.get_data()
    await state.clear()
    review = replace(_draft_review(data, callback.from_user), created_at=datetime.now(timezone.utc))
    feedback_id = await db_call(database.add_feedback, review)
    main_kb = ui.build_main_kb(settings.webapp_url)
    if feedback_id is None:
        await callback.answer("Произошла ошибка при сохранении отзыва.")
        await callback.message.answer("❌ Произошла ошибка при сохранении отзыва.", reply_markup=main_kb)
        return
    await callback.answer("Спасибо за ваш отзыв!")
    await callback.message.edit_reply_markup(reply_markup=None)
    await callback.message.answer("✅ Ваш отзыв успешно сохранен!", reply_markup=main_kb)
    await notify_admins(bot, database, settings, replace(review, id=feedback_id))


@router.callback_query(F.data == "feedback|cancel")
async def on_feedback_cancel(callback: types.CallbackQuery, state: FSMContext, settings: Settings):
    await state.clear()
    await callback.answer("Отзыв отменен")
    await callback.message.edit_reply_markup(reply_markup=None)
    await callback.message.answer("❌ Отзыв отменен.", reply_markup=ui.build_main_kb(settings.webapp_url))


@router.callback_query(F.data.startswith("feedback|") | F.data.startswith("workshop|"))
async def on_feedback_stale(callback: types.CallbackQuery):
    await callback.answer("Сессия устарела, начни заново", show_alert=True)


# workshops, ratings, reviews


@router.callback_query(F.data.startswith("stats|"))
async def on_workshop_stats(callback: types.CallbackQuery, database: Database, settings: Settings):
    await callback.answer()
    workshop_id = _callback_id(callback)
    workshop = await db_call(database.get_workshop, workshop_id) if workshop_id is not None else None
    if workshop is None:
        await callback.message.answer("Мастерская не найдена.")
        return
    reviews = await db_call(database.list_feedback, workshop.name)
    last_reviews = await db_call(database.list_text_reviews, workshop.name, 0, LAST_REVIEWS_LIMIT)
    text = texts.format_workshop_stats(
        workshop,
        compute_workshop_stats(reviews),
        last_reviews,
        show_names=settings.is_admin(callback.from_user.id),
    )
    try:
        await callback.message.edit_text(
            text,
            parse_mode="HTML",
            reply_markup=ui.build_back_kb("back_to_workshops", "« Назад к списку"),
        )
    except TelegramBadRequest as exc:
        logging.warning("workshop stats failed: %s", exc)
        await callback.message.answer("Произошла ошибка при получении статистики.")


@router.callback_query(F.data == "back_to_workshops")
async def on_back_to_workshops(callback: types.CallbackQuery, database: Database):
    await callback.answer()
    workshops = await db_call(database.list_workshops)
    if not workshops:
        await callback.message.edit_text("В данный момент нет доступных мастерских.")
        return
    await callback.message.edit_text(
        "Выберите мастерскую для просмотра статистики:",
        reply_markup=ui.build_workshops_kb(workshops, "stats"),
    )


@router.callback_query(F.data == "back_to_rating_menu")
async def on_back_to_rating_menu(callback: types.CallbackQuery):
    await callback.answer()
    await callback.message.edit_text("Выберите действие:", reply_markup=ui.build_rating_menu_kb())


@router.callback_query(F.data == "view_ratings")
async def on_view_ratings(callback: types.CallbackQuery):
    await callback.answer()
    await callback.message.edit_text("Выберите тип рейтинга:", reply_markup=ui.build_rating_types_kb())


@router.callback_query(F.data.startswith("rating|"))
async def on_rating(callback: types.CallbackQuery, database: Database):
    parts = _callback_parts(callback)
    rating_type = resolve_rating_type(parts[1] if len(parts) > 1 else None)
    if rating_type is None:
        await callback.answer("Некорректные данные", show_alert=True)
        return
    await callback.answer()
    workshops = await db_call(database.list_workshops)
    reviews = await db_call(database.list_feedback)
    rows = build_ratings(workshops, reviews, rating_type)
    await callback.message.edit_text(
        texts.format_rating(rows, rating_type),
        parse_mode="HTML",
        reply_markup=ui.build_back_kb("view_ratings"),
    )


@router.callback_query(F.data == "view_seasons")
async def on_view_seasons(callback: types.CallbackQuery, database: Database):
    await callback.answer()
    seasons = await db_call(database.list_seasons)
    if not seasons:
        await callback.message.edit_text("Сезонов пока нет.", reply_markup=ui.build_back_kb("view_ratings"))
        return
    await callback.message.edit_text("Выберите сезон:", reply_markup=ui.build_seasons_kb(seasons))


@router.callback_query(F.data.startswith("season|"))
async def on_season_rating(callback: types.CallbackQuery, database: Database):
    await callback.answer()
    season_id = _callback_id(callback)
    season = await db_call(database.get_season, season_id) if season_id is not None else None
    if season is None:
        await callback.message.edit_text("Сезон не найден.", reply_markup=ui.build_back_kb("view_seasons"))
        return
    workshops = await db_call(database.list_workshops)
    reviews = await db_call(database.list_feedback)
    rows = build_ratings(workshops, reviews, "overall", season)
    await callback.message.edit_text(
        texts.format_rating(rows, "overall", season),
        parse_mode="HTML",
        reply_markup=ui.build_back_kb("view_seasons"),
    )


@router.callback_query(F.data == "view_reviews")
async def on_view_reviews(callback: types.CallbackQuery, database: Database):
    await callback.answer()
    workshops = await db_call(database.list_workshops)
    if not workshops:
        await callback.message.edit_text(
            "В данный момент нет доступных мастерских.",
            reply_markup=ui.build_back_kb("back_to_rating_menu"),
        )
        return
    await callback.message.edit_text(
        "Выберите мастерскую для просмотра отзывов:",
        reply_markup=ui.build_workshops_kb(workshops, "reviews", back="back_to_rating_menu"),
    )


@router.callback_query(F.data.startswith("reviews|"))
async def on_reviews_page(callback: types.CallbackQuery, database: Database):
    await callback.answer()
    workshop_id = _callback_id(callback)
    page = _callback_id(callback, 2) or 0
    workshop = await db_call(database.get_workshop, workshop_id) if workshop_id is not None else None
    if workshop is None:
        await callback.message.edit_text("Мастерская не найдена.", reply_markup=ui.build_back_kb("view_reviews"))
        return
    total = await db_call(database.count_text_reviews, workshop.name)
    total_pages = math.ceil(total / REVIEWS_PER_PAGE)
    reviews = await db_call(database.list_text_reviews, workshop.name, page * REVIEWS_PER_PAGE, REVIEWS_PER_PAGE)
    if not reviews and page == 0:
        await callback.message.edit_text(
            "Для данной мастерской пока нет отзывов.",
            reply_markup=ui.build_back_kb("view_reviews"),
        )
        return
    try:
        await callback.message.edit_text(
            texts.format_reviews_page(workshop.name, reviews, page, total_pages),
            parse_mode="HTML",
            reply_markup=ui.build_reviews_nav_kb(workshop.id, page, total_pages),
        )
    except TelegramBadRequest as exc:
        logging.warning("reviews page failed: %s", exc)
        await callback.message.answer("Произошла ошибка при получении отзывов.")


# admin panel


@router.callback_query(F.data == "admin_back")
async def on_admin_back(callback: types.CallbackQuery, state: FSMContext, settings: Settings):
    if await _deny_non_admin(callback, settings):
        return
    await state.clear()
    await callback.answer()
    await callback.message.edit_text("🔐 Панель администратора\n\nВыберите действие:", reply_markup=ui.build_admin_kb())


@router.callback_query(F.data == "admin_all_feedbacks")
async def on_admin_all_feedbacks(callback: types.CallbackQuery, settings: Settings):
    if await _deny_non_admin(callback, settings):
        return
    await callback.answer()
    await callback.message.edit_text(
        "Выберите количество последних отзывов для просмотра:",
        reply_markup=ui.build_feedback_count_kb(),
    )


@router.callback_query(F.data.startswith("feedbacks|"))
async def on_admin_recent_feedbacks(callback: types.CallbackQuery, database: Database, settings: Settings):
    if await _deny_non_admin(callback, settings):
        return
    await callback.answer()
    limit = _callback_id(callback) or 10
    reviews = await db_call(database.list_recent_feedback, limit)
    if not reviews:
        await callback.message.answer("Отзывы не найдены.")
        return
    await send_chunks(callback.message, f"📊 Последние {len(reviews)} отзывов:\n\n", reviews)


@router.callback_query(F.data == "admin_search_user")
async def on_admin_search_user(callback: types.CallbackQuery, state: FSMContext, settings: Settings):
    if await _deny_non_admin(callback, settings):
        return
    await callback.answer()
    await state.set_state(SearchUserForm.query)
    await callback.message.edit_text(
        "Введите имя или username пользователя для поиска:",
        reply_markup=ui.build_back_kb("admin_back", "« Отмена"),
    )


@router.message(SearchUserForm.query, F.text)
async def on_search_user_query(message: types.Message, state: FSMContext, database: Database):
    await state.clear()
    users = await db_call(database.search_users, message.text or "")
    await message.answer(
        texts.format_user_search(users),
        parse_mode="HTML",
        reply_markup=ui.build_user_feedbacks_kb(users) if users else None,
    )


@router.callback_query(F.data.startswith("user_feedbacks|"))
async def on_user_feedbacks(callback: types.CallbackQuery, database: Database, settings: Settings):
    if await _deny_non_admin(callback, settings):
        return
    await callback.answer()
    user_id = _callback_id(callback)
    reviews = await db_call(database.list_user_feedback, user_id) if user_id is not None else []
    if not reviews:
        await callback.message.answer("Отзывы данного пользователя не найдены.")
        return
    await send_chunks(callback.message, "📊 Отзывы пользователя:\n\n", reviews)


@router.callback_query(F.data == "admin_add_workshop")
async def on_admin_add_workshop(callback: types.CallbackQuery, state: FSMContext, settings: Settings):
    if await _deny_non_admin(callback, settings):
        return
    await callback.answer()
    await state.set_state(AddWorkshopForm.name)
    await callback.message.edit_text(
        "Введите название новой мастерской:",
        reply_markup=ui.build_back_kb("admin_back", "« Отмена"),
    )


@router.message(AddWorkshopForm.name, F.text)
async def on_add_workshop_name(message: types.Message, state: FSMContext):
    name = message.text.strip()
    if not name:
        await message.answer("Название не может быть пустым. Введите название мастерской:")
        return
    await state.update_data(name=name)
    await state.set_state(AddWorkshopForm.address)
    await message.answer("Теперь введите адрес мастерской:")


@router.message(AddWorkshopForm.address, F.text)
async def on_add_workshop_address(message: types.Message, state: FSMContext):
    await state.update_data(address=message.text.strip())
    await state.set_state(AddWorkshopForm.description)
    await message.answer("Теперь введите описание мастерской:")


@router.message(AddWorkshopForm.description, F.text)
async def on_add_workshop_description(message: types.Message, state: FSMContext):
    data = await state.update_data(description=message.text.strip())
    await state.set_state(AddWorkshopForm.confirm)
    await message.answer(
        "📍 Проверьте данные:\n\n"
        f"Название: {data['name']}\n"
        f"Адрес: {data['address']}\n"
        f"Описание: {data['description']}",
        reply_markup=ui.build_confirm_kb("workshop_add"),
    )


@router.callback_query(AddWorkshopForm.confirm, F.data == "workshop_add|confirm")
async def on_add_workshop_confirm(callback: types.CallbackQuery, state: FSMContext, database: Database):
    data = await state.get_data()
    await state.clear()
    added = await db_call(database.add_workshop, data["name"], data["address"], data["description"])
    if added:
        await callback.answer("Мастерская успешно добавлена!")
        await callback.message.answer(f"Мастерская \"{data['name']}\" успешно добавлена.")
    else:
        await callback.answer("Мастерская с таким названием уже существует.")
        await callback.message.answer("Мастерская с таким названием уже существует.")


@router.callback_query(F.data.startswith("workshop_add|"))
async def on_add_workshop_cancel(callback: types.CallbackQuery, state: FSMContext):
    await state.clear()
    await callback.answer("Добавление мастерской отменено")
    await callback.message.answer("Добавление мастерской отменено.")


@router.callback_query(F.data == "admin_remove_workshop")
async def on_admin_remove_workshop(callback: types.CallbackQuery, database: Database, settings: Settings):
    if await _deny_non_admin(callback, settings):
        return
    await callback.answer()
    workshops = await db_call(database.list_workshops)
    if not workshops:
        await callback.message.edit_text("Нет доступных мастерских.", reply_markup=ui.build_back_kb("admin_back"))
        return
    await callback.message.edit_text(
        "Выберите мастерскую для удаления:",
        reply_markup=ui.build_remove_workshops_kb(workshops),
    )


@router.callback_query(F.data.startswith("remove_workshop|"))
async def on_remove_workshop(callback: types.CallbackQuery, database: Database, settings: Settings):
    if await _deny_non_admin(callback, settings):
        return
    await callback.answer()
    workshop_id = _callback_id(callback)
    workshop = await db_call(database.get_workshop, workshop_id) if workshop_id is not None else None
    if workshop is None or not await db_call(database.remove_workshop, workshop.id):
        await callback.message.answer("Мастерская не найдена.")
        return
    await callback.message.edit_text(
        f"Мастерская \"{workshop.name}\" успешно удалена.",
        reply_markup=ui.build_back_kb("admin_back"),
    )


@router.callback_query(F.data == "admin_list_workshops")
async def on_admin_list_workshops(callback: types.CallbackQuery, database: Database, settings: Settings):
    if await _deny_non_admin(callback, settings):
        return
    await callback.answer()
    workshops = await db_call(database.list_workshops)
    if not workshops:
        await callback.message.edit_text("Нет доступных мастерских.", reply_markup=ui.build_back_kb("admin_back"))
        return
    lines = ["📋 Список мастерских:", ""]
    for index, workshop in enumerate(workshops, start=1):
        lines += [f"{index}. {workshop.name}", f"📍 {workshop.address}", f"ℹ️ {workshop.description}", ""]
    await callback.message.edit_text("\n".join(lines), reply_markup=ui.build_back_kb("admin_back"))


@router.callback_query(F.data == "admin_seasons")
async def on_admin_seasons(callback: types.CallbackQuery, database: Database, settings: Settings):
    if await _deny_non_admin(callback, settings):
        return
    await callback.answer()
    seasons = await db_call(database.list_seasons)
    text = texts.format_seasons(seasons) + (
        "\n\nДобавить: /add_season Название; Описание; 2024-01-01; 2024-03-31"
        "\nУдалить: /delete_season ID"
    )
    await callback.message.edit_text(text, parse_mode="HTML", reply_markup=ui.build_back_kb("admin_back"))


@router.callback_query(F.data.startswith("confirm_delete|"))
async def on_confirm_delete(callback: types.CallbackQuery, database: Database, settings: Settings):
    if await _deny_non_admin(callback, settings):
        return
    feedback_id = _callback_id(callback)
    deleted = feedback_id is not None and await db_call(database.delete_feedback, feedback_id)
    if deleted:
        await callback.answer("Отзыв успешно удален!")
        await callback.message.edit_text("✅ Отзыв успешно удален.")
    else:
        await callback.answer("Отзыв не найден.")
        await callback.message.edit_text("❌ Отзыв не найден.")


@router.callback_query(F.data == "cancel_delete")
async def on_cancel_delete(callback: types.CallbackQuery):
    await callback.answer("Удаление отменено")
    await callback.message.edit_text("❌ Удаление отменено.")
