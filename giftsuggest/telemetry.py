"""Optional Postgres telemetry of suggestion requests (enabled by DATABASE_URL)."""
import json
import logging
import threading
import time
from typing import Optional

import psycopg

from . import config

logger = logging.getLogger("giftsuggest.telemetry")

_init_lock = threading.Lock()
_db_ready = False
_last_cleanup_ts = 0.0


def enabled() -> bool:
    return bool(config.TELEMETRY_DB_URL)


def _ensure_table():
    global _db_ready
    if _db_ready or not enabled():
        return
    with _init_lock:
        if _db_ready:
            return
        try:
            with psycopg.connect(config.TELEMETRY_DB_URL, connect_timeout=3) as conn:
                with conn.cursor() as cur:
                    cur.execute(
                        """
                        CREATE TABLE IF NOT EXISTS telemetry_events (
                            id BIGSERIAL PRIMARY KEY,
                            ts TIMESTAMPTZ NOT NULL DEFAULT NOW(),
                            event_name TEXT NOT NULL,
                            account_id TEXT NOT NULL,
                            route TEXT NOT NULL DEFAULT '/suggest-gifts',
                            stage TEXT,
                            latency_ms INTEGER,
                            props JSONB NOT NULL DEFAULT '{}'::jsonb
                        );
                        """
                    )
                    cur.execute("ALTER TABLE telemetry_events ADD COLUMN IF NOT EXISTS stage TEXT;")
                    cur.execute(
                        "CREATE INDEX IF NOT EXISTS telemetry_events_event_ts_idx ON telemetry_events (event_name, ts DESC);"
                    )
                conn.commit()
            _db_ready = True
        except psycopg.Error as e:
            logger.warning("Telemetry init skipped: %s", e)


def _cleanup_if_needed():
    global _last_cleanup_ts
    now = time.time()
    if now - _last_cleanup_ts < 3600:
        return
    _last_cleanup_ts = now
    try:
        with psycopg.connect(config.TELEMETRY_DB_URL, connect_timeout=3) as conn:
            with conn.cursor() as cur:
                cur.execute(
                    "DELETE FROM telemetry_events WHERE ts < NOW() - (%s || ' days')::interval",
                    (str(config.TELEMETRY_RETENTION_DAYS),),
                )
            conn.commit()
    except psycopg.Error as e:
        logger.warning("Telemetry cleanup failed: %s", e)


def track_event(
    event_name: str,
    account_id: Optional[str],
    latency_ms: Optional[int] = None,
    props: Optional[dict] = None,
    stage: Optional[str] = None,
    route: str = "/suggest-gifts",
):
    """Record one request outcome; `stage` is the last pipeline stage reached."""
    if not enabled():
        return
    _ensure_table()
    if not _db_ready:
        return
    try:
        props_json = json.dumps(props if isinstance(props, dict) else {}, ensure_ascii=False)
    except (TypeError, ValueError):
        props_json = "{}"
    try:
        with psycopg.connect(config.TELEMETRY_DB_URL, connect_timeout=3) as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    INSERT INTO telemetry_events (event_name, account_id, route, stage, latency_ms, props)
                    VALUES (%s, %s, %s, %s, %s, %s::jsonb)
                    """,
                    (
                        str(event_name or "").strip() or "unknown_event",
                        str(account_id or "anonymous"),
                        route,
                        stage,
                        int(latency_ms) if isinstance(latency_ms, (int, float)) else None,
                        props_json,
                    ),
                )
            conn.commit()
    except psycopg.Error as e:
        logger.warning("Telemetry insert failed: %s", e)
        return
    _cleanup_if_needed()
