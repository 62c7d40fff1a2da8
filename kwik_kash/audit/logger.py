"""
Audit Logger

Every change to a user's budget leaves an AuditEvent behind. Events go
to the structured local log first and then, when a backend is
configured, to audit storage (Google Sheets or in memory).

DESIGN DECISION: Auditing is a side channel. AuditLogger.log() never
raises; a storage failure is written to the local log and reported as
False. One correlation id ties together the events of a single user
action, e.g. a check-in that leaves the day over the daily limit.
"""

import logging
from typing import Optional
from uuid import UUID, uuid4

import structlog

from kwik_kash.models.audit import AuditEvent, AuditEventBuilder, AuditSeverity
from kwik_kash.services.storage import AuditStorageInterface


def configure_logging(debug: bool = False) -> None:
    """
    JSON logs through the stdlib "kwik_kash" logger.

    INFO and above by default; DEBUG when debug is set.
    """
    logging.getLogger("kwik_kash").setLevel(logging.DEBUG if debug else logging.INFO)
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.processors.JSONRenderer()
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


configure_logging()


_LEVELS = {
    AuditSeverity.DEBUG: "debug",
    AuditSeverity.INFO: "info",
    AuditSeverity.WARNING: "warning",
    AuditSeverity.ERROR: "error",
    AuditSeverity.CRITICAL: "critical",
}


class AuditLogger:
    """
    Writes audit events to the local log and, optionally, to storage.

    Without a storage backend the session still gets a full JSON trail
    in the process log; recent_events() is then empty.
    """

    def __init__(self, storage: Optional[AuditStorageInterface] = None):
        self._storage = storage
        self._logger = structlog.get_logger("kwik_kash.audit")

    async def log(self, event: AuditEvent) -> bool:
        """
        Record one event. Never raises.

        Returns:
            False if the storage backend refused the event, else True.
        """
        level = _LEVELS.get(event.severity, "info")
        getattr(self._logger, level)("audit_event", **event.to_log_dict())

        if self._storage is None:
            return True

        try:
            return await self._storage.append_event(event)
        except Exception as e:
            self._logger.error(
                "audit_storage_failed",
                event_id=str(event.event_id),
                event_type=event.event_type.value,
                error=str(e),
            )
            return False

    async def recent_events(
        self,
        limit: int = 50,
        user_id: Optional[str] = None,
    ) -> list[AuditEvent]:
        """Most recent persisted events, newest first. Empty without storage."""
        if self._storage is None:
            return []
        try:
            return await self._storage.get_recent_events(limit=limit, user_id=user_id)
        except Exception as e:
            self._logger.error("audit_read_failed", error=str(e))
            return []

    # -------------------------------------------------------------------------
    # Shorthands for the session's non-mutation events
    # -------------------------------------------------------------------------

    async def log_persistence_failed(
        self,
        user_id: str,
        record_key: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.persistence_failed(
            user_id=user_id,
            record_key=record_key,
            error_message=error_message,
            correlation_id=correlation_id,
        ))

    async def log_validation_failed(
        self,
        user_id: str,
        schema_name: str,
        issues: list[dict],
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.validation_failed(
            user_id=user_id,
            schema_name=schema_name,
            issues=issues,
            correlation_id=correlation_id,
        ))

    async def log_advice(
        self,
        user_id: str,
        flow: str,
        used_fallback: bool,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.advice_requested(
            user_id=user_id,
            flow=flow,
            used_fallback=used_fallback,
            correlation_id=correlation_id,
        ))

    async def log_error(
        self,
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.system_error(
            error_type=error_type,
            error_message=error_message,
            details=details,
            correlation_id=correlation_id,
        ))

    async def log_external_service_error(
        self,
        service: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Gemini or Google Sheets did not give a usable answer."""
        await self.log(AuditEventBuilder.external_service_error(
            service=service,
            error_message=error_message,
            correlation_id=correlation_id,
        ))


def create_correlation_id() -> UUID:
    """
    New id for one user action.

    Generate it where the action starts and hand it to every event the
    action produces.
    """
    return uuid4()
