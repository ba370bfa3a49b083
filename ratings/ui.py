from typing import Optional, Sequence

from aiogram import types
from aiogram.utils.keyboard import InlineKeyboardBuilder, ReplyKeyboardBuilder

from ratings.models import Season, Workshop

LEAVE_FEEDBACK = "👍 Оставить отзыв"
RATINGS_MENU = "📊 Рейтинг/Отзывы"
WORKSHOPS_LIST = "📋 Список сервисов"
MINI_APP = "📱 Mini App"
SKIP_TEXT = "Пропустить"
YES = "Да"
NO = "Нет"
RATING_BUTTONS = ["1", "2", "3", "4", "5"]


def build_main_kb(webapp_url: str = "") -> types.ReplyKeyboardMarkup:
    rows = [
        [types.KeyboardButton(text=LEAVE_FEEDBACK), types.KeyboardButton(text=RATINGS_MENU)],
        [types.KeyboardButton(text=WORKSHOPS_LIST)],
    ]
    if webapp_url:
        rows.append([types.KeyboardButton(text=MINI_APP, web_app=types.WebAppInfo(url=webapp_url))])
    return types.ReplyKeyboardMarkup(keyboard=rows, resize_keyboard=True)


def build_launch_kb(webapp_url: str) -> Optional[types.InlineKeyboardMarkup]:
    if not webapp_url:
        return None
    kb = InlineKeyboardBuilder()
    kb.button(text="Открыть приложение", web_app=types.WebAppInfo(url=webapp_url))
    return kb.as_markup()


def build_score_kb() -> types.ReplyKeyboardMarkup:
    kb = ReplyKeyboardBuilder()
    for label in RATING_BUTTONS:
        kb.button(text=label)
    kb.adjust(5)
    return kb.as_markup(resize_keyboard=True, one_time_keyboard=True)


def build_on_time_kb() -> types.ReplyKeyboardMarkup:
    kb = ReplyKeyboardBuilder()
    kb.button(text=YES)
    kb.button(text=NO)
    kb.adjust(2)
    return kb.as_markup(resize_keyboard=True, one_time_keyboard=True)


def build_skip_kb() -> types.ReplyKeyboardMarkup:
    kb = ReplyKeyboardBuilder()
    kb.button(text=SKIP_TEXT)
    return kb.as_markup(resize_keyboard=True, one_time_keyboard=True)


def build_confirm_kb(prefix: str) -> types.InlineKeyboardMarkup:
    kb = InlineKeyboardBuilder()
    kb.button(text="✅ Подтвердить", callback_data=f"{prefix}|confirm")
    kb.button(text="❌ Отменить", callback_data=f"{prefix}|cancel")
    kb.adjust(2)
    return kb.as_markup()


def build_workshops_kb(workshops: Sequence[Workshop], action: str, back: Optional[str] = None) -> types.InlineKeyboardMarkup:
    kb = InlineKeyboardBuilder()
    for workshop in workshops:
        kb.button(text=workshop.name, callback_data=f"{action}|{workshop.id}")
    if back:
        kb.button(text="« Назад", callback_data=back)
    kb.adjust(1)
    return kb.as_markup()


def build_remove_workshops_kb(workshops: Sequence[Workshop]) -> types.InlineKeyboardMarkup:
    kb = InlineKeyboardBuilder()
    for workshop in workshops:
        kb.button(text=f"❌ {workshop.name}", callback_data=f"remove_workshop|{workshop.id}")
    kb.button(text="« Назад", callback_data="admin_back")
    kb.adjust(1)
    return kb.as_markup()


def build_rating_menu_kb() -> types.InlineKeyboardMarkup:
    kb = InlineKeyboardBuilder()
    kb.button(text="📊 Посмотреть рейтинг", callback_data="view_ratings")
    kb.button(text="💬 Смотреть отзывы", callback_data="view_reviews")
    kb.adjust(1)
    return kb.as_markup()


def build_rating_types_kb() -> types.InlineKeyboardMarkup:
    kb = InlineKeyboardBuilder()
    kb.button(text="🏆 Общий рейтинг", callback_data="rating|overall")
    kb.button(text="⭐️ По качеству работ", callback_data="rating|quality")
    kb.button(text="💬 По коммуникации", callback_data="rating|communication")
    kb.button(text="⏰ Соблюдение сроков", callback_data="rating|delays")
    kb.button(text="📅 Сезонный рейтинг", callback_data="view_seasons")
    kb.button(text="« Назад", callback_data="back_to_rating_menu")
    kb.adjust(1)
    return kb.as_markup()


def build_seasons_kb(seasons: Sequence[Season]) -> types.InlineKeyboardMarkup:
    kb = InlineKeyboardBuilder()
    for season in seasons:
        kb.button(text=season.name, callback_data=f"season|{season.id}")
    kb.button(text="« Назад", callback_data="view_ratings")
    kb.adjust(1)
    return kb.as_markup()


def build_back_kb(callback_data: str, text: str = "« Назад") -> types.InlineKeyboardMarkup:
    kb = InlineKeyboardBuilder()
    kb.button(text=text, callback_data=callback_data)
    return kb.as_markup()


def build_reviews_nav_kb(workshop_id: int, page: int, total_pages: int) -> types.InlineKeyboardMarkup:
    kb = InlineKeyboardBuilder()
    nav = 0
    if page > 0:
        kb.button(text="« Предыдущая", callback_data=f"reviews|{workshop_id}|{page - 1}")
        nav += 1
    if page < total_pages - 1:
        kb.button(text="Следующая »", callback_data=f"reviews|{workshop_id}|{page + 1}")
        nav += 1
    kb.button(text="« Назад к списку", callback_data="view_reviews")
    kb.adjust(*([nav, 1] if nav else [1]))
    return kb.as_markup()


def build_admin_kb() -> types.InlineKeyboardMarkup:
    kb = InlineKeyboardBuilder()
    kb.button(text="📊 Последние отзывы", callback_data="admin_all_feedbacks")
    kb.button(text="🔍 Поиск пользователя", callback_data="admin_search_user")
    kb.button(text="➕ Добавить мастерскую", callback_data="admin_add_workshop")
    kb.button(text="❌ Удалить мастерскую", callback_data="admin_remove_workshop")
    kb.button(text="📋 Список мастерских", callback_data="admin_list_workshops")
    kb.button(text="📅 Сезоны", callback_data="admin_seasons")
    kb.adjust(1)
    return kb.as_markup()


def build_feedback_count_kb() -> types.InlineKeyboardMarkup:
    kb = InlineKeyboardBuilder()
    for count in (10, 30, 50):
        kb.button(text=f"{count} отзывов", callback_data=f"feedbacks|{count}")
    kb.button(text="« Назад", callback_data="admin_back")
    kb.adjust(3, 1)
    return kb.as_markup()


def build_user_feedbacks_kb(users: Sequence[dict]) -> types.InlineKeyboardMarkup:
    kb = InlineKeyboardBuilder()
    for user in users:
        name = f"{user['first_name']} {user['last_name']}".strip() or str(user["user_id"])
        kb.button(text=f"Отзывы {name}", callback_data=f"user_feedbacks|{user['user_id']}")
    kb.button(text="« Назад", callback_data="admin_back")
    kb.adjust(1)
    return kb.as_markup()


def build_delete_confirm_kb(feedback_id: int) -> types.InlineKeyboardMarkup:
    kb = InlineKeyboardBuilder()
    kb.button(text="✅ Да", callback_data=f"confirm_delete|{feedback_id}")
    kb.button(text="❌ Нет", callback_data="cancel_delete")
    kb.adjust(2)
    return kb.as_markup()
