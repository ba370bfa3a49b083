from datetime import datetime
from html import escape
from typing import Optional, Sequence

from ratings.models import Review, Season, Workshop
from ratings.stats import RatingRow, WorkshopStats

MESSAGE_CHUNK_LIMIT = 3800
ENTRY_COMMENT_LIMIT = 2000
STATS_COMMENT_LIMIT = 800
NAME_LIMIT = 200

RATING_TITLES = {
    "overall": "🏆 Общий рейтинг",
    "quality": "📊 Рейтинг по качеству работ",
    "communication": "📊 Рейтинг по коммуникации",
    "delays": "📊 Рейтинг по соблюдению сроков",
}


def escape_html(text: str) -> str:
    return escape(text or "", quote=False)


def format_average(value: float) -> str:
    return f"{value:.2f}"


def format_date(value: Optional[datetime]) -> str:
    return value.strftime("%d.%m.%Y") if value else "—"


def format_datetime(value: Optional[datetime]) -> str:
    return value.strftime("%d.%m.%Y %H:%M") if value else "—"


def escape_within(text: str, limit: int) -> str:
    """HTML-escape ``text``, cutting it so the escaped result fits in ``limit`` characters."""
    escaped = escape_html(text)
    if len(escaped) <= limit:
        return escaped
    pieces = []
    size = len("...")
    for char in text:
        piece = escape_html(char)
        if size + len(piece) > limit:
            break
        pieces.append(piece)
        size += len(piece)
    return "".join(pieces) + "..."


def split_messages(header: str, entries: Sequence[str], limit: int = MESSAGE_CHUNK_LIMIT) -> list[str]:
    # Entries are never cut; callers keep each one under the limit.
    messages = []
    current = header
    for entry in entries:
        if current and len(current) + len(entry) > limit:
            messages.append(current)
            current = entry
        else:
            current += entry
    if current:
        messages.append(current)
    return messages


def format_workshops_list(rows: Sequence[RatingRow]) -> str:
    if not rows:
        return "В данный момент нет доступных мастерских."
    lines = ["📋 <b>Список сервисов:</b>", ""]
    for index, row in enumerate(rows, start=1):
        stats = row.stats
        lines += [
            f"<b>{index}. {escape_html(row.workshop.name)}</b>",
            f"📍 <b>Адрес:</b> {escape_html(row.workshop.address)}",
            f"ℹ️ <b>Описание:</b> {escape_html(row.workshop.description)}",
            f"⭐️ <b>Средняя оценка качества:</b> {format_average(stats.avg_quality)}/5",
            f"💬 <b>Средняя оценка коммуникации:</b> {format_average(stats.avg_communication)}/5",
            f"✅ <b>Выполнено вовремя:</b> {stats.on_time_percentage:.1f}%",
            f"📝 <b>Всего отзывов:</b> {stats.total_reviews}",
            "",
        ]
    return "\n".join(lines)


def _rating_value_line(row: RatingRow, rating_type: str) -> str:
    stats = row.stats
    if rating_type == "quality":
        return f"⭐️ Качество: <b>{format_average(stats.avg_quality)}/5</b>"
    if rating_type == "communication":
        return f"💬 Коммуникация: <b>{format_average(stats.avg_communication)}/5</b>"
    if rating_type == "delays":
        return f"✅ Выполнено вовремя: <b>{stats.on_time_percentage:.1f}%</b>"
    return (
        f"🏆 Рейтинг: <b>{row.sort_value(rating_type):.2f}</b>\n"
        f"⭐️ {format_average(stats.avg_quality)} · 💬 {format_average(stats.avg_communication)}"
        f" · ⏰ {stats.on_time_percentage:.1f}%"
    )


def format_rating(rows: Sequence[RatingRow], rating_type: str, season: Optional[Season] = None) -> str:
    title = RATING_TITLES.get(rating_type, RATING_TITLES["overall"])
    lines = [f"<b>{title}:</b>"]
    if season is not None:
        lines.append(f"<i>{escape_html(season.name)} ({format_season_range(season)})</i>")
    lines.append("")
    if not rows:
        lines.append("В данный момент нет доступных мастерских.")
    for index, row in enumerate(rows, start=1):
        lines += [
            f"<b>{index}. {escape_html(row.workshop.name)}</b>",
            _rating_value_line(row, rating_type),
            f"📝 Всего отзывов: <b>{row.stats.total_reviews}</b>",
            "",
        ]
    return "\n".join(lines)


def format_reviews_page(
    workshop_name: str,
    reviews: Sequence[Review],
    page: int,
    total_pages: int,
    limit: int = MESSAGE_CHUNK_LIMIT,
) -> str:
    """One page of text reviews; comments are shortened evenly so the page fits in ``limit``."""
    header = "\n".join(
        [
            f"💬 <b>Отзывы о мастерской \"{escape_within(workshop_name, NAME_LIMIT)}\"</b>",
            f"<i>Страница {page + 1} из {max(total_pages, 1)}</i>",
            "",
        ]
    )
    blocks = [
        "\n".join(
            [
                f"Отзыв от {format_date(review.created_at)}",
                f"⭐️ Качество: <b>{review.quality_rating}/5</b>",
                f"💬 Коммуникация: <b>{review.communication_rating}/5</b>",
                f"⏰ Вовремя: <b>{review.on_time_label}</b>",
                "📝 Комментарий: ",
            ]
        )
        for review in reviews
    ]
    fixed = len(header) + sum(len(block) + 2 for block in blocks)
    budget = max((limit - fixed) // max(len(reviews), 1), 0)
    parts = [header]
    for block, review in zip(blocks, reviews):
        parts.append("\n" + block + escape_within(review.text_feedback, budget) + "\n")
    return "".join(parts)


def format_workshop_stats(
    workshop: Workshop,
    stats: WorkshopStats,
    last_reviews: Sequence[Review],
    show_names: bool,
) -> str:
    lines = [
        f"📊 <b>{escape_html(workshop.name)}</b>",
        "",
        f"📍 Адрес: {escape_html(workshop.address)}",
        f"ℹ️ Описание: {escape_html(workshop.description)}",
        "",
        f"📝 Всего отзывов: {stats.total_reviews}",
        f"⭐️ Средняя оценка качества: {format_average(stats.avg_quality)}",
        f"💬 Средняя оценка коммуникации: {format_average(stats.avg_communication)}",
        f"✅ Выполнено вовремя: {stats.on_time_count}",
        f"❌ С задержкой: {stats.delayed_count}",
    ]
    if last_reviews:
        lines += ["", "📌 <b>Последние отзывы:</b>"]
        for review in last_reviews:
            author = escape_html(review.author_name) if show_names else "Аноним"
            lines += [
                "",
                f"- От {author}",
                f"  Отзыв: {escape_within(review.text_feedback, STATS_COMMENT_LIMIT)}",
                f"  Дата: {format_date(review.created_at)}",
            ]
    return "\n".join(lines)


def format_feedback_preview(review: Review) -> str:
    lines = [
        "📝 <b>Предпросмотр вашего отзыва:</b>",
        "",
        f"<b>🏢 Мастерская:</b> {escape_html(review.workshop)}",
        f"<b>⭐️ Качество:</b> {review.quality_rating}/5",
        f"<b>💬 Коммуникация:</b> {review.communication_rating}/5",
        f"<b>⏰ Выполнено вовремя:</b> {review.on_time_label}",
    ]
    if review.text_feedback:
        lines.append(f"📝 <b>Комментарий:</b> {escape_within(review.text_feedback, ENTRY_COMMENT_LIMIT)}")
    return "\n".join(lines)


def format_admin_notification(review: Review, workshop: Optional[Workshop], stats: WorkshopStats) -> str:
    user_line = f"👤 <b>Пользователь:</b> {escape_html(review.author_name)}"
    if review.username:
        user_line += f" (@{escape_html(review.username)})"
    lines = [
        "📝 <b>Новый отзыв!</b>",
        "",
        user_line,
        f"🆔 ID: <code>{review.user_id}</code>",
        "",
        f"🏢 <b>Мастерская:</b> {escape_html(review.workshop)}",
    ]
    if workshop is not None:
        lines.append(f"📍 <b>Адрес:</b> {escape_html(workshop.address)}")
    lines += [
        "📊 <b>Оценки:</b>",
        f"⭐️ Качество: {review.quality_rating}/5",
        f"💬 Коммуникация: {review.communication_rating}/5",
        f"⏰ Выполнено вовремя: {review.on_time_label}",
        "",
        f"💭 <b>Отзыв:</b> {escape_within(review.text_feedback, ENTRY_COMMENT_LIMIT)}",
        "",
        "📈 <b>Текущая статистика мастерской:</b>",
        f"📝 Всего отзывов: {stats.total_reviews}",
        f"⭐️ Средняя оценка качества: {format_average(stats.avg_quality)}/5",
        f"💬 Средняя оценка коммуникации: {format_average(stats.avg_communication)}/5",
        f"✅ Выполнено вовремя: {stats.on_time_count}",
        f"❌ С задержкой: {stats.delayed_count}",
        "",
        f"🗑 Удалить отзыв: /delete_feedback {review.id}",
    ]
    return "\n".join(lines)


def format_feedback_entry(review: Review, include_delete: bool = True) -> str:
    lines = [
        f"👤 Пользователь: {escape_within(review.author_name, NAME_LIMIT)} (ID: {review.user_id})",
        f"🏢 Мастерская: {escape_within(review.workshop, NAME_LIMIT)}",
        f"⭐️ Качество: {review.quality_rating}",
        f"💬 Коммуникация: {review.communication_rating}",
        f"⏰ Вовремя: {review.on_time_label}",
        f"📝 Отзыв: {escape_within(review.text_feedback, ENTRY_COMMENT_LIMIT)}",
        f"📅 Дата: {format_datetime(review.created_at)}",
    ]
    if include_delete:
        lines += ["", f"🗑 Удалить: /delete_feedback {review.id}"]
    return "\n".join(lines) + "\n\n"


def format_user_search(users: Sequence[dict]) -> str:
    if not users:
        return "Пользователи не найдены."
    lines = ["🔍 Найденные пользователи:", ""]
    for user in users:
        name = f"{user['first_name']} {user['last_name']}".strip()
        lines.append(f"👤 {escape_html(name)}")
        if user["username"]:
            lines.append(f"@{escape_html(user['username'])}")
        lines += [f"ID: {user['user_id']}", f"Количество отзывов: {user['feedback_count']}", ""]
    return "\n".join(lines)


def format_season_range(season: Season) -> str:
    end = format_date(season.end_date) if season.end_date else "Текущий"
    return f"{format_date(season.start_date)} — {end}"


def format_seasons(seasons: Sequence[Season]) -> str:
    if not seasons:
        return "Сезонов пока нет."
    lines = ["📅 <b>Сезоны:</b>", ""]
    for season in seasons:
        lines.append(f"{season.id}. <b>{escape_html(season.name)}</b> ({format_season_range(season)})")
        if season.description:
            lines.append(f"   {escape_html(season.description)}")
    return "\n".join(lines)
