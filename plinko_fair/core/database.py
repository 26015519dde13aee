"""
Database module for persistent storage.
Uses SQLite for the pregenerated hash chain, per-user game rounds and the
roll fields stored on bet history.
"""

import sqlite3
import threading
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, List, Optional

from plinko_fair.config import settings
from plinko_fair.core.logger import get_logger
from plinko_fair.core.models import BetRecord, HashLink, Round

logger = get_logger("database")


def _parse_time(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


class Database:
    """Thread-safe SQLite wrapper. One connection per thread."""

    def __init__(self, db_path: Optional[Path] = None):
        self.db_path = Path(db_path) if db_path else settings.paths.get_db_path()
        self._local = threading.local()
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        logger.info(f"Initializing database at {self.db_path}")
        self._init_db()

    def _get_connection(self) -> sqlite3.Connection:
        if getattr(self._local, "connection", None) is None:
            self._local.connection = sqlite3.connect(
                str(self.db_path), check_same_thread=False, timeout=30
            )
            self._local.connection.row_factory = sqlite3.Row
        return self._local.connection

    def close(self):
        """Close this thread's connection."""
        connection = getattr(self._local, "connection", None)
        if connection is not None:
            connection.close()
            self._local.connection = None

    def _init_db(self):
        conn = self._get_connection()
        with conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS hash_chain (
                    game TEXT NOT NULL,
                    idx INTEGER NOT NULL,
                    hash TEXT NOT NULL,
                    previous_hash TEXT,
                    PRIMARY KEY (game, idx)
                )
            """
            )
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS game_rounds (
                    id TEXT PRIMARY KEY,
                    user_id TEXT NOT NULL,
                    game TEXT NOT NULL,
                    hash TEXT NOT NULL,
                    seed TEXT,
                    nonce INTEGER DEFAULT 0,
                    round_over INTEGER DEFAULT 0,
                    created_at TEXT NOT NULL,
                    completed_at TEXT
                )
            """
            )
            # At most one open round per (user, game)
            conn.execute(
                """
                CREATE UNIQUE INDEX IF NOT EXISTS idx_open_round
                ON game_rounds (user_id, game) WHERE round_over = 0
            """
            )
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS bet_history (
                    id TEXT PRIMARY KEY,
                    user_id TEXT NOT NULL,
                    game TEXT NOT NULL,
                    amount REAL NOT NULL,
                    risk TEXT NOT NULL,
                    rows INTEGER NOT NULL,
                    payout_multiplier REAL NOT NULL,
                    payout REAL NOT NULL,
                    board_index INTEGER,
                    hole INTEGER NOT NULL,
                    client_seed TEXT NOT NULL,
                    round_id TEXT NOT NULL,
                    round_hash TEXT NOT NULL,
                    nonce INTEGER NOT NULL,
                    auto_bet INTEGER DEFAULT 0,
                    created_at TEXT NOT NULL
                )
            """
            )
            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_bet_user ON bet_history (user_id, game)"
            )

    # ==================== Hash chain ====================

    def count_hashes(self, game: str) -> int:
        row = self._get_connection().execute(
            "SELECT COUNT(*) FROM hash_chain WHERE game = ?", (game,)
        ).fetchone()
        return row[0]

    def get_highest_hash(self, game: str) -> Optional[HashLink]:
        row = self._get_connection().execute(
            "SELECT idx, hash, previous_hash FROM hash_chain WHERE game = ? "
            "ORDER BY idx DESC LIMIT 1",
            (game,),
        ).fetchone()
        return HashLink(row["idx"], row["hash"], row["previous_hash"]) if row else None

    def get_hash(self, game: str, index: int) -> Optional[HashLink]:
        row = self._get_connection().execute(
            "SELECT idx, hash, previous_hash FROM hash_chain WHERE game = ? AND idx = ?",
            (game, index),
        ).fetchone()
        return HashLink(row["idx"], row["hash"], row["previous_hash"]) if row else None

    def insert_hash_batch(self, game: str, batch: List[HashLink]) -> int:
        conn = self._get_connection()
        with conn:
            cursor = conn.executemany(
                "INSERT OR IGNORE INTO hash_chain (game, idx, hash, previous_hash) "
                "VALUES (?, ?, ?, ?)",
                [(game, link.index, link.hash, link.previous_hash) for link in batch],
            )
        return cursor.rowcount

    # ==================== Rounds ====================

    def _row_to_round(self, row: sqlite3.Row) -> Round:
        return Round(
            id=row["id"],
            user_id=row["user_id"],
            game_name=row["game"],
            hash=row["hash"],
            nonce=row["nonce"],
            round_over=bool(row["round_over"]),
            seed=row["seed"],
            created_at=_parse_time(row["created_at"]),
            completed_at=_parse_time(row["completed_at"]),
        )

    def create_round(self, round_id: str, user_id: str, game: str, round_hash: str) -> Round:
        conn = self._get_connection()
        now = datetime.now(timezone.utc).isoformat()
        with conn:
            conn.execute(
                "INSERT INTO game_rounds (id, user_id, game, hash, nonce, round_over, created_at) "
                "VALUES (?, ?, ?, ?, 0, 0, ?)",
                (round_id, user_id, game, round_hash, now),
            )
        return self.get_round(round_id)

    def get_round(self, round_id: str) -> Optional[Round]:
        row = self._get_connection().execute(
            "SELECT * FROM game_rounds WHERE id = ?", (round_id,)
        ).fetchone()
        return self._row_to_round(row) if row else None

    def get_open_round(self, user_id: str, game: str) -> Optional[Round]:
        row = self._get_connection().execute(
            "SELECT * FROM game_rounds WHERE user_id = ? AND game = ? AND round_over = 0",
            (user_id, game),
        ).fetchone()
        return self._row_to_round(row) if row else None

    def increment_round_nonce(self, user_id: str, game: str) -> Optional[Round]:
        conn = self._get_connection()
        with conn:
            conn.execute(
                "UPDATE game_rounds SET nonce = nonce + 1 "
                "WHERE user_id = ? AND game = ? AND round_over = 0",
                (user_id, game),
            )
        return self.get_open_round(user_id, game)

    def close_round(self, round_id: str, seed: str) -> bool:
        """Close an open round and store its seed. False if it was already closed."""
        conn = self._get_connection()
        with conn:
            cursor = conn.execute(
                "UPDATE game_rounds SET round_over = 1, seed = ?, completed_at = ? "
                "WHERE id = ? AND round_over = 0",
                (seed, datetime.now(timezone.utc).isoformat(), round_id),
            )
        return cursor.rowcount == 1

    # ==================== Bet history ====================

    def insert_bet(self, record: BetRecord) -> BetRecord:
        conn = self._get_connection()
        if not record.id:
            record.id = uuid.uuid4().hex
        if record.created_at is None:
            record.created_at = datetime.now(timezone.utc)
        with conn:
            conn.execute(
                """
                INSERT INTO bet_history (
                    id, user_id, game, amount, risk, rows, payout_multiplier, payout,
                    board_index, hole, client_seed, round_id, round_hash, nonce,
                    auto_bet, created_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
                (
                    record.id, record.user_id, record.game_name, record.amount,
                    record.risk, record.rows, record.payout_multiplier, record.payout,
                    record.board_index, record.hole, record.client_seed,
                    record.round_id, record.round_hash, record.nonce,
                    int(record.auto_bet), record.created_at.isoformat(),
                ),
            )
        return record

    def _row_to_bet(self, row: sqlite3.Row) -> BetRecord:
        return BetRecord(
            id=row["id"],
            user_id=row["user_id"],
            game_name=row["game"],
            amount=row["amount"],
            risk=row["risk"],
            rows=row["rows"],
            payout_multiplier=row["payout_multiplier"],
            payout=row["payout"],
            board_index=row["board_index"],
            hole=row["hole"],
            client_seed=row["client_seed"],
            round_id=row["round_id"],
            round_hash=row["round_hash"],
            nonce=row["nonce"],
            auto_bet=bool(row["auto_bet"]),
            created_at=_parse_time(row["created_at"]),
        )

    def get_bet(self, bet_id: str) -> Optional[BetRecord]:
        row = self._get_connection().execute(
            "SELECT * FROM bet_history WHERE id = ?", (bet_id,)
        ).fetchone()
        return self._row_to_bet(row) if row else None

    def list_bets(self, user_id: str, game: str, limit: int = 50) -> List[BetRecord]:
        rows = self._get_connection().execute(
            "SELECT * FROM bet_history WHERE user_id = ? AND game = ? "
            "ORDER BY created_at DESC LIMIT ?",
            (user_id, game, limit),
        ).fetchall()
        return [self._row_to_bet(row) for row in rows]

    def get_stats(self, game: str) -> Dict:
        row = self._get_connection().execute(
            "SELECT COUNT(*) AS bets, COALESCE(SUM(amount), 0) AS wagered, "
            "COALESCE(SUM(payout), 0) AS paid FROM bet_history WHERE game = ?",
            (game,),
        ).fetchone()
        wagered = row["wagered"]
        return {
            "bets": row["bets"],
            "wagered": wagered,
            "paid": row["paid"],
            "rtp": (row["paid"] / wagered) if wagered else None,
        }
