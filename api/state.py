"""
Thread-safe state management for the logbook API.

Holds the single LogbookService for the process. Request handlers reach it
through get_app_state().service; tests install their own service with
set_service().
"""
import threading
import logging
from typing import Optional, Dict, Any
from datetime import datetime, timezone

logger = logging.getLogger(__name__)


class ApplicationState:
    """
    Singleton application state manager.

    Use get_app_state() to access the singleton instance.
    """

    _instance: Optional['ApplicationState'] = None
    _lock: threading.Lock = threading.Lock()

    def __new__(cls):
        """Ensure singleton pattern."""
        if cls._instance is None:
            with cls._lock:
                # Double-check locking
                if cls._instance is None:
                    cls._instance = super().__new__(cls)
                    cls._instance._initialized = False
        return cls._instance

    def __init__(self):
        """Initialize application state (only once)."""
        if self._initialized:
            return

        self._initialized = True
        self._service_lock = threading.RLock()
        self._service = None
        self._startup_time = datetime.now(timezone.utc)

        logger.info("Application state initialized")

    @property
    def service(self):
        """Get the logbook service (built from configuration on first use)."""
        with self._service_lock:
            if self._service is None:
                self._service = self._build_service()
            return self._service

    def _build_service(self):
        from api.database import get_storage
        from api.config import settings as api_settings
        from src.config import settings as logbook_settings
        from src.logbook.service import LogbookService

        service = LogbookService.from_config(
            logbook_settings, api_settings.database_url, storage=get_storage()
        )
        logger.info("Logbook service created")
        return service

    def set_service(self, service) -> None:
        """Install a service (tests, embedding)."""
        with self._service_lock:
            self._service = service

    def reset(self) -> None:
        """Forget the current service without stopping it."""
        with self._service_lock:
            self._service = None

    @property
    def uptime_seconds(self) -> float:
        """Get application uptime in seconds."""
        return (datetime.now(timezone.utc) - self._startup_time).total_seconds()

    def health_check(self) -> Dict[str, Any]:
        """
        Health of the logbook runtime.

        Returns:
            Dict with component status
        """
        with self._service_lock:
            service = self._service
        if service is None:
            status = "not_initialized"
        elif service.degraded:
            status = "degraded"
        elif service.startup_complete:
            status = "healthy"
        else:
            status = "starting"
        return {
            "logbook_service": status,
            "uptime_seconds": self.uptime_seconds,
        }


def get_app_state() -> ApplicationState:
    """
    Get the application state singleton.

    Returns:
        ApplicationState: The singleton application state instance
    """
    return ApplicationState()
