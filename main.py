import asyncio

from app.config import BOT_TOKEN, DB_PATH, PURGE_INTERVAL_SEC
from app.telethon_client import build_context, client, load_plugins
from app.logging_json import configure_logging, get_logger


def setup_logging():
    # Ініціалізуємо структуроване або plain логування згідно з env:
    # LOG_JSON=1 -> JSON формат
    # LOG_PLAIN_FIELDS=0 -> plain без key=value полів
    configure_logging()


async def _purge_loop(kv, interval: int):
    log = get_logger("main.purge")
    while True:
        await asyncio.sleep(interval)
        try:
            await asyncio.to_thread(kv.purge_expired)
        except Exception as e:
            log.warning("purge_expired failed: %s", e)


async def _main():
    setup_logging()
    log = get_logger("main")

    ctx = build_context(DB_PATH)
    try:
        removed = ctx.kv.purge_expired()
    except Exception as e:
        log.error("KV store init failed: %s", e, db_path=DB_PATH)
        raise
    log.info("Сховище посилань готове", db_path=DB_PATH, purged=removed, rows=ctx.kv.count())

    log.info("Запускаю клієнт…")
    if BOT_TOKEN:
        await client.start(bot_token=BOT_TOKEN)
    else:
        await client.start()

    log.info("Завантажую плагіни…")
    await load_plugins()

    purge_task = None
    if PURGE_INTERVAL_SEC > 0:
        purge_task = asyncio.create_task(_purge_loop(ctx.kv, PURGE_INTERVAL_SEC))

    log.info("✅ Бот готовий. Чекаю подій…")
    try:
        await client.run_until_disconnected()
    finally:
        if purge_task:
            purge_task.cancel()
        ctx.kv.close()


if __name__ == "__main__":
    asyncio.run(_main())
