from __future__ import annotations

import logging
import os
import shutil
import time
from dataclasses import dataclass
from typing import Any, Dict, Optional

DISK_KEYS = ("total_bytes", "used_bytes", "free_bytes", "pct_free")


@dataclass
class HealthService:
    """Builds the /api/health report from the effective config."""
    cfg: Dict[str, Any]

    @property
    def backend(self) -> Optional[str]:
        return (self.cfg.get("detection") or {}).get("backend")

    @property
    def data_dir(self) -> str:
        db_path = (self.cfg.get("storage") or {}).get("local_database_path") or ""
        return os.path.dirname(db_path) or "."

    @staticmethod
    def volume_stats(path: str) -> Dict[str, Optional[float]]:
        """Usage of the volume holding path; every value is None when unreadable."""
        try:
            usage = shutil.disk_usage(path)
        except OSError as e:
            logging.debug(f"Disk usage unavailable for {path}: {e}")
            return dict.fromkeys(DISK_KEYS)
        return {
            "total_bytes": usage.total,
            "used_bytes": usage.used,
            "free_bytes": usage.free,
            "pct_free": usage.free / usage.total * 100 if usage.total else None,
        }

    def report(self, database, service) -> Dict[str, Any]:
        stored = 0
        if database is not None:
            try:
                stored = database.count_results()
            except Exception as e:
                logging.warning(f"Error counting results: {e}")

        wired = database is not None and service is not None
        return {
            "status": "ok" if wired else "degraded",
            "backend": self.backend,
            "database": database is not None,
            "results_stored": stored,
            "disk": self.volume_stats(self.data_dir),
            "timestamp": time.time(),
        }
