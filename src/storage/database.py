"""
Database module for storing detection results against their claims.

Schema versioning ensures automatic migration when the schema changes.
"""

from __future__ import annotations

import json
import logging
import os
import sqlite3
import threading
import time
from typing import Dict, List, Optional

from models.detection import DetectionResult, ImageMetadata, QcStatus, StoredResult

# Schema version - increment when schema changes
EXPECTED_SCHEMA_VERSION = 1

_RESULT_COLUMNS = (
    "claim_id, region, created_at, sample_id, lat, lon, has_solar, confidence, "
    "panel_count_est, pv_area_sqm_est, capacity_kw_est, qc_status, qc_notes, "
    "bbox_or_mask, image_source, capture_date, processing_time_ms"
)


class Database:
    """
    Database for detection results.

    Tables:
    - schema_meta: tracks schema version
    - detection_results: one row per claim, latest detection wins

    Old tables are dropped when the stored schema version does not match.
    """

    def __init__(self, local_database_path: str):
        """
        Initialize the database.

        Args:
            local_database_path: Path to the SQLite database file.
        """
        self.local_database_path = local_database_path
        self.conn: Optional[sqlite3.Connection] = None
        self._lock = threading.Lock()

        # Create directory if it doesn't exist
        db_dir = os.path.dirname(local_database_path)
        if db_dir:
            os.makedirs(db_dir, exist_ok=True)

        logging.info(f"Database initialized at {local_database_path}")

    def _get_connection(self) -> sqlite3.Connection:
        """Get or create database connection."""
        if self.conn is None:
            # Shared with API worker threads; writes are serialized by _lock.
            self.conn = sqlite3.connect(self.local_database_path, check_same_thread=False)
        return self.conn

    def _get_schema_version(self) -> Optional[int]:
        """Get current schema version from database."""
        try:
            cursor = self._get_connection().cursor()
            cursor.execute(
                "SELECT name FROM sqlite_master WHERE type='table' AND name='schema_meta'"
            )
            if cursor.fetchone() is None:
                return None

            cursor.execute("SELECT schema_version FROM schema_meta LIMIT 1")
            row = cursor.fetchone()
            return row[0] if row else None
        except sqlite3.Error:
            return None

    def _drop_old_tables(self) -> None:
        cursor = self._get_connection().cursor()
        for table in ("detection_results", "schema_meta"):
            try:
                cursor.execute(f"DROP TABLE IF EXISTS {table}")
                logging.debug(f"Dropped table: {table}")
            except sqlite3.Error as e:
                logging.warning(f"Could not drop table {table}: {e}")
        self._get_connection().commit()

    def _create_schema(self) -> None:
        cursor = self._get_connection().cursor()

        cursor.execute("""
            CREATE TABLE schema_meta (
                id INTEGER PRIMARY KEY CHECK (id = 1),
                schema_version INTEGER NOT NULL,
                created_at TEXT NOT NULL DEFAULT (datetime('now'))
            )
        """)

        cursor.execute("""
            CREATE TABLE detection_results (
                claim_id TEXT PRIMARY KEY,
                region TEXT,
                created_at REAL NOT NULL,
                sample_id TEXT NOT NULL,
                lat REAL NOT NULL,
                lon REAL NOT NULL,
                has_solar INTEGER NOT NULL,
                confidence REAL NOT NULL,
                panel_count_est INTEGER NOT NULL,
                pv_area_sqm_est REAL NOT NULL,
                capacity_kw_est REAL NOT NULL,
                qc_status TEXT NOT NULL,
                qc_notes TEXT NOT NULL,
                bbox_or_mask TEXT NOT NULL,
                image_source TEXT,
                capture_date TEXT,
                processing_time_ms INTEGER
            )
        """)

        cursor.execute(
            "CREATE INDEX idx_detection_results_created ON detection_results(created_at)"
        )
        cursor.execute(
            "CREATE INDEX idx_detection_results_region ON detection_results(region)"
        )

        cursor.execute(
            "INSERT INTO schema_meta (id, schema_version) VALUES (1, ?)",
            (EXPECTED_SCHEMA_VERSION,)
        )

        self._get_connection().commit()
        logging.info(f"Created schema version {EXPECTED_SCHEMA_VERSION}")

    def initialize(self) -> None:
        """
        Initialize the database schema.

        If schema_meta is missing or version doesn't match EXPECTED_SCHEMA_VERSION,
        drops old tables and creates a fresh schema.
        """
        try:
            current_version = self._get_schema_version()

            if current_version != EXPECTED_SCHEMA_VERSION:
                if current_version is not None:
                    logging.warning(
                        f"Schema version mismatch: found {current_version}, "
                        f"expected {EXPECTED_SCHEMA_VERSION}. Dropping old tables."
                    )
                else:
                    logging.info("No schema found, creating fresh database.")

                self._drop_old_tables()
                self._create_schema()
            else:
                logging.info(f"Schema version {current_version} is current")

        except sqlite3.Error as e:
            logging.error(f"Database initialization error: {e}")
            raise

    # -------------------------------------------------------------------------
    # Write Operations
    # -------------------------------------------------------------------------

    def save_result(
        self,
        claim_id: str,
        result: DetectionResult,
        region: Optional[str] = None,
        created_at: Optional[float] = None,
    ) -> bool:
        """
        Store (or replace) the detection result for a claim.

        Returns:
            True on success, False on a database error.
        """
        ts = created_at if created_at is not None else time.time()
        try:
            with self._lock:
                conn = self._get_connection()
                conn.execute(f"""
                    INSERT OR REPLACE INTO detection_results ({_RESULT_COLUMNS})
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """, (
                    claim_id,
                    region,
                    ts,
                    result.sample_id,
                    result.lat,
                    result.lon,
                    int(result.has_solar),
                    result.confidence,
                    result.panel_count_est,
                    result.pv_area_sqm_est,
                    result.capacity_kw_est,
                    result.qc_status.value,
                    json.dumps(list(result.qc_notes)),
                    result.bbox_or_mask,
                    result.image_metadata.source,
                    result.image_metadata.capture_date,
                    result.processing_time_ms,
                ))
                conn.commit()

            logging.debug(f"Detection result saved: claim={claim_id}, sample={result.sample_id}")
            return True

        except sqlite3.Error as e:
            logging.error(f"Error saving detection result for {claim_id}: {e}")
            return False

    def delete_result(self, claim_id: str) -> bool:
        """Delete the result for a claim. Returns True if a row was removed."""
        try:
            with self._lock:
                conn = self._get_connection()
                cursor = conn.execute(
                    "DELETE FROM detection_results WHERE claim_id = ?", (claim_id,)
                )
                conn.commit()
            return cursor.rowcount > 0
        except sqlite3.Error as e:
            logging.error(f"Error deleting detection result for {claim_id}: {e}")
            return False

    # -------------------------------------------------------------------------
    # Read Operations
    # -------------------------------------------------------------------------

    @staticmethod
    def _row_to_stored(row: tuple) -> StoredResult:
        (claim_id, region, created_at, sample_id, lat, lon, has_solar, confidence,
         panel_count, area, capacity, qc_status, qc_notes, bbox, source,
         capture_date, processing_ms) = row
        result = DetectionResult(
            sample_id=sample_id,
            lat=lat,
            lon=lon,
            has_solar=bool(has_solar),
            confidence=confidence,
            panel_count_est=panel_count,
            pv_area_sqm_est=area,
            capacity_kw_est=capacity,
            qc_status=QcStatus(qc_status),
            qc_notes=tuple(json.loads(qc_notes or "[]")),
            bbox_or_mask=bbox or "",
            image_metadata=ImageMetadata(source=source or "", capture_date=capture_date or ""),
            processing_time_ms=processing_ms or 0,
        )
        return StoredResult(claim_id=claim_id, result=result, region=region, created_at=created_at)

    def get_result(self, claim_id: str) -> Optional[StoredResult]:
        """Get the stored result for a claim, or None."""
        try:
            with self._lock:
                cursor = self._get_connection().execute(
                    f"SELECT {_RESULT_COLUMNS} FROM detection_results WHERE claim_id = ?",
                    (claim_id,),
                )
                row = cursor.fetchone()
            return self._row_to_stored(row) if row else None
        except sqlite3.Error as e:
            logging.error(f"Error reading detection result for {claim_id}: {e}")
            return None

    def list_results(self, limit: Optional[int] = None) -> List[StoredResult]:
        """
        Get stored results, newest first.

        Args:
            limit: Maximum number of rows (all rows when None).
        """
        query = f"SELECT {_RESULT_COLUMNS} FROM detection_results ORDER BY created_at DESC"
        params: tuple = ()
        if limit is not None:
            query += " LIMIT ?"
            params = (int(limit),)
        try:
            with self._lock:
                rows = self._get_connection().execute(query, params).fetchall()
            return [self._row_to_stored(row) for row in rows]
        except sqlite3.Error as e:
            logging.error(f"Error listing detection results: {e}")
            return []

    def count_results(self) -> int:
        try:
            with self._lock:
                row = self._get_connection().execute(
                    "SELECT COUNT(*) FROM detection_results"
                ).fetchone()
            return int(row[0] or 0)
        except sqlite3.Error as e:
            logging.error(f"Error counting detection results: {e}")
            return 0

    def get_qc_status_counts(self) -> Dict[str, int]:
        """Count stored results per qc_status."""
        try:
            with self._lock:
                rows = self._get_connection().execute(
                    "SELECT qc_status, COUNT(*) FROM detection_results GROUP BY qc_status"
                ).fetchall()
            return {row[0]: row[1] for row in rows}
        except sqlite3.Error as e:
            logging.error(f"Error getting qc status counts: {e}")
            return {}

    def close(self) -> None:
        """Close database connection."""
        if self.conn:
            self.conn.close()
            self.conn = None
            logging.info("Database connection closed")
