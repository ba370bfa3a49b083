"""
Tests for bot message formatting.
"""

import re
from datetime import datetime, timezone

from ratings.models import ON_TIME_NO, Review, Workshop
from ratings.stats import WorkshopStats, build_workshop_rows, compute_workshop_stats
from ratings.texts import (
    MESSAGE_CHUNK_LIMIT,
    escape_within,
    format_admin_notification,
    format_average,
    format_feedback_entry,
    format_rating,
    format_reviews_page,
    format_workshop_stats,
    format_workshops_list,
    split_messages,
)


def make_review(**kwargs):
    values = dict(
        workshop="Alpha",
        quality_rating=4,
        communication_rating=5,
        on_time=ON_TIME_NO,
        text_feedback="Задержали на день",
        created_at=datetime(2024, 6, 1, 9, tzinfo=timezone.utc),
        id=12,
        user_id=777,
        first_name="Анна",
        last_name="Смирнова",
        username="anna",
    )
    values.update(kwargs)
    return Review(**values)


def test_format_average_always_two_decimals():
    assert format_average(0) == "0.00"
    assert format_average(4.666) == "4.67"


def test_split_messages_respects_limit():
    entries = ["x" * 40 for _ in range(5)]
    messages = split_messages("header\n", entries, limit=100)

    assert len(messages) == 3
    assert messages[0].startswith("header\n")
    assert all(len(message) <= 100 for message in messages)
    assert "".join(messages) == "header\n" + "".join(entries)


def test_workshop_names_are_escaped():
    rows = build_workshop_rows([Workshop(1, "<b>Гараж</b> & Co")], [])
    text = format_workshops_list(rows)
    assert "&lt;b&gt;Гараж&lt;/b&gt; &amp; Co" in text
    assert "0.00/5" in text


def test_empty_workshop_list():
    assert format_workshops_list([]) == "В данный момент нет доступных мастерских."


def test_format_rating_numbers_rows():
    rows = build_workshop_rows([Workshop(1, "Alpha"), Workshop(2, "Bravo")], [make_review()], overall=True)
    text = format_rating(rows, "overall")
    assert "1. Alpha" in text
    assert "2. Bravo" in text
    assert "Общий рейтинг" in text


def test_workshop_stats_hide_names_for_regular_users():
    review = make_review()
    stats = compute_workshop_stats([review])
    workshop = Workshop(1, "Alpha", "ул. Мира, 5", "Покраска")

    public = format_workshop_stats(workshop, stats, [review], show_names=False)
    private = format_workshop_stats(workshop, stats, [review], show_names=True)

    assert "Аноним" in public
    assert "Анна" not in public
    assert "Анна Смирнова" in private
    assert "❌ С задержкой: 1" in public


def test_admin_notification_contains_delete_command():
    review = make_review()
    text = format_admin_notification(review, Workshop(1, "Alpha", "ул. Мира, 5"), WorkshopStats(4.0, 5.0, 1, 0, 0.0))

    assert "(@anna)" in text
    assert "<code>777</code>" in text
    assert "⏰ Выполнено вовремя: Нет" in text
    assert "/delete_feedback 12" in text


def test_escape_within_never_cuts_an_entity():
    assert escape_within("a < b", 100) == "a &lt; b"
    cut = escape_within("&" * 50, 20)
    assert len(cut) <= 20
    assert cut == "&amp;" * 3 + "..."


def test_full_reviews_page_fits_telegram_limit():
    reviews = [make_review(text_feedback="x" * 1000), make_review(text_feedback="<&>" * 333)] * 3

    text = format_reviews_page("Alpha", reviews[:5], 0, 2)

    assert len(text) <= MESSAGE_CHUNK_LIMIT
    assert text.count("Отзыв от") == 5
    assert re.findall(r"&(?!amp;|lt;|gt;)", text) == []


def test_short_reviews_are_shown_whole():
    text = format_reviews_page("Alpha", [make_review(text_feedback="Всё & хорошо")], 0, 1)
    assert "📝 Комментарий: Всё &amp; хорошо" in text
    assert "..." not in text


def test_long_feedback_entries_still_split_under_limit():
    review = make_review(text_feedback="&" * 1000, first_name="Я" * 64, last_name="Ю" * 64)
    entries = [format_feedback_entry(review) for _ in range(4)]

    assert all(len(entry) < MESSAGE_CHUNK_LIMIT for entry in entries)
    assert all(len(chunk) <= MESSAGE_CHUNK_LIMIT for chunk in split_messages("header\n", entries))
