"""
Process-wide objects shared between the CLI bootstrap and the API routes.
"""

import copy
import threading
from typing import Any, Dict, Optional


class SharedState:
    """
    One instance per process. `serve` wires in the database, the verification
    service and the effective config before uvicorn starts; routes read them
    through the module-level `state`.
    """
    _instance = None
    _guard = threading.Lock()

    def __new__(cls):
        with cls._guard:
            if cls._instance is None:
                instance = super().__new__(cls)
                instance.database = None
                instance.service = None
                instance._config = None
                instance._config_lock = threading.Lock()
                cls._instance = instance
        return cls._instance

    def set_database(self, db) -> None:
        self.database = db

    def set_service(self, service) -> None:
        self.service = service

    def set_config(self, config: Dict[str, Any]) -> None:
        with self._config_lock:
            self._config = copy.deepcopy(config)

    def get_config_copy(self) -> Optional[Dict[str, Any]]:
        with self._config_lock:
            return copy.deepcopy(self._config) if self._config is not None else None


state = SharedState()
