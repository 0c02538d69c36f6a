import logging

from db import KV_STORE_DDL, get_conn
from logging_setup import configure_logging
from settings import settings

configure_logging(settings.log_level)
logger = logging.getLogger("create_state_table")

logger.info("Connecting to %s", settings.db_url)
with get_conn() as conn:
    with conn.cursor() as cur:
        cur.execute(KV_STORE_DDL)
    conn.commit()
logger.info("DDL applied")
