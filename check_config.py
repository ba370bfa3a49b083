from ratings.config import Settings


def describe(settings: Settings) -> list[tuple[str, str, bool]]:
    """Rows of (name, shown value, critical) for the startup checklist."""
    return [
        ("BOT_TOKEN", "✅ Есть" if settings.bot_token else "❌ Отсутствует", True),
        ("DATABASE_URL", "✅ Есть" if settings.database_url else f"sqlite: {settings.database_path}", False),
        ("ADMIN_IDS", ", ".join(str(i) for i in sorted(settings.admin_ids)) or "❌ Отсутствует", True),
        ("ADMIN_CHAT_ID", str(settings.admin_chat_id) if settings.admin_chat_id else "❌ Отсутствует", False),
        ("PORT", str(settings.port), False),
        ("WEBAPP_URL", settings.webapp_url or "❌ Отсутствует", True),
        ("WEBAPP_ORIGINS", ", ".join(settings.webapp_origins) or "❌ Отсутствует (разрешены все)", True),
        ("WEBAPP_AUTH_MAX_AGE_SECONDS", str(settings.auth_max_age_seconds), False),
        ("ENABLE_DAILY_VOTE_LIMIT", "да" if settings.daily_vote_limit else "нет", False),
    ]


def main():
    print("🔍 Проверка конфигурации Telegram WebApp...\n")
    for name, value, critical in describe(Settings.from_env()):
        status = "[CRITICAL]" if critical else "[INFO]"
        print(f"{status} {name}: {value}")
    print("\nЕсли initData пустой, приложение открыто не через Telegram или Mini App не привязан к боту.")


if __name__ == "__main__":
    main()
