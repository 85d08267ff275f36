# app/telethon_client.py
import logging
from types import SimpleNamespace
from importlib import import_module
import pkgutil

from telethon import TelegramClient
from app.config import API_ID, API_HASH, SESSION, CONTROL_PEER, PLUGINS_PACKAGE, DB_PATH
from app.services import init_store
from app.services.link_store import LinkStore
from app.services.message_memory import MessageMemory
from app.services.resharing import ResharingEngine
from app.utils.formatting import TelegramHtmlNotices

log = logging.getLogger("telethon_client")

client = TelegramClient(SESSION, API_ID, API_HASH)
client.parse_mode = "html"

# Shared state, заповнюється build_context()
APP_CONTEXT = SimpleNamespace(
    kv=None,        # SqliteKVStore
    links=None,     # LinkStore
    memory=None,    # MessageMemory (текст повідомлень для обробки видалень)
    engine=None,    # ResharingEngine
)


def build_context(db_path: str = DB_PATH) -> SimpleNamespace:
    kv = init_store(db_path)
    links = LinkStore(kv)
    APP_CONTEXT.kv = kv
    APP_CONTEXT.links = links
    APP_CONTEXT.memory = MessageMemory(kv)
    APP_CONTEXT.engine = ResharingEngine(links, notices=TelegramHtmlNotices())
    return APP_CONTEXT


async def load_plugins():
    # resolve CONTROL_PEER -> numeric peer_id if possible
    control_id = None
    if CONTROL_PEER:
        try:
            control_id = await client.get_peer_id(CONTROL_PEER)
            log.info("Resolved CONTROL_PEER=%r to peer_id=%s", CONTROL_PEER, control_id)
        except Exception as e:
            log.warning("Can't resolve CONTROL_PEER=%r: %s. Commands will be accepted from any chat.", CONTROL_PEER, e)

    if APP_CONTEXT.engine is None:
        build_context()

    package = import_module(PLUGINS_PACKAGE)
    for _, modname, ispkg in pkgutil.iter_modules(package.__path__):
        if ispkg or modname.startswith("_"):
            continue
        full = f"{PLUGINS_PACKAGE}.{modname}"
        try:
            mod = import_module(full)
            if hasattr(mod, "setup"):
                mod.setup(client=client, control_peer=control_id, context=APP_CONTEXT)
                log.info("Loaded plugin: %s", full)
        except Exception as e:
            log.exception("Failed to load plugin %s: %s", full, e)
