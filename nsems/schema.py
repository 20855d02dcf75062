# =======================================================================================
# nsems/schema.py - Table Definitions
# =======================================================================================
"""
DDL for both participants.

The authority owns the canonical holder records and event log; a scan point
(device) owns its verification cache, its local event log and its sync queue.
Statements are written for SQLite, the default store on both sides.
"""

AUTHORITY_SCHEMA = [
    """
    CREATE TABLE IF NOT EXISTS holders (
        identifier   VARCHAR(64)  NOT NULL PRIMARY KEY,
        secret       VARCHAR(255) NOT NULL,
        status       VARCHAR(16)  NOT NULL DEFAULT 'active',
        name         VARCHAR(255),
        program      VARCHAR(255),
        department   VARCHAR(255),
        year         INTEGER,
        image_link   VARCHAR(512),
        updated_at_ms BIGINT NOT NULL DEFAULT 0
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS verification_events (
        id                 INTEGER PRIMARY KEY AUTOINCREMENT,
        identifier         VARCHAR(64)  NOT NULL,
        time_window        BIGINT       NOT NULL,
        signature_presented VARCHAR(128) NOT NULL DEFAULT '',
        result             VARCHAR(16)  NOT NULL,
        reason             VARCHAR(255),
        source             VARCHAR(16)  NOT NULL,
        scanner_id         VARCHAR(64),
        timestamp_ms       BIGINT       NOT NULL,
        latency_ms         INTEGER      NOT NULL DEFAULT 0,
        received_at_ms     BIGINT       NOT NULL,
        UNIQUE (identifier, time_window, timestamp_ms)
    )
    """,
]

DEVICE_SCHEMA = [
    """
    CREATE TABLE IF NOT EXISTS cache_entries (
        identifier   VARCHAR(64)  NOT NULL PRIMARY KEY,
        secret       VARCHAR(255),
        status       VARCHAR(16)  NOT NULL,
        name         VARCHAR(255),
        program      VARCHAR(255),
        department   VARCHAR(255),
        year         INTEGER,
        image_link   VARCHAR(512),
        cached_at_ms BIGINT       NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS cache_meta (
        meta_key   VARCHAR(64)  NOT NULL PRIMARY KEY,
        meta_value VARCHAR(255)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS local_events (
        id                 INTEGER PRIMARY KEY AUTOINCREMENT,
        identifier         VARCHAR(64)  NOT NULL,
        time_window        BIGINT       NOT NULL,
        signature_presented VARCHAR(128) NOT NULL DEFAULT '',
        result             VARCHAR(16)  NOT NULL,
        reason             VARCHAR(255),
        source             VARCHAR(16)  NOT NULL,
        scanner_id         VARCHAR(64),
        timestamp_ms       BIGINT       NOT NULL,
        latency_ms         INTEGER      NOT NULL DEFAULT 0,
        superseded         BOOLEAN      NOT NULL DEFAULT 0,
        is_synced          BOOLEAN      NOT NULL DEFAULT 0
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS sync_queue (
        id                 INTEGER PRIMARY KEY AUTOINCREMENT,
        event_id           INTEGER      NOT NULL UNIQUE,
        attempts           INTEGER      NOT NULL DEFAULT 0,
        next_attempt_at_ms BIGINT       NOT NULL DEFAULT 0,
        last_error         VARCHAR(255),
        created_at_ms      BIGINT       NOT NULL
    )
    """,
]
