"""
Logging configuration for TimeLock.

Provides structured JSON logging for audit trails and debugging.
"""

import json
import logging
import sys
import time
import uuid
from contextvars import ContextVar
from typing import Any, Dict, List, Optional

# Context variable for request ID tracking
request_id_var: ContextVar[str] = ContextVar('request_id', default='')

SENSITIVE_FIELDS = ["signature", "sig_b64", "private_key", "private_key_b64", "secret", "password", "token"]


class StructuredFormatter(logging.Formatter):
    """
    JSON formatter for structured logging.

    Outputs logs in a consistent JSON format suitable for
    log aggregation systems like ELK, Splunk, or CloudWatch.
    """

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": time.strftime('%Y-%m-%dT%H:%M:%SZ', time.gmtime(record.created)),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        request_id = request_id_var.get()
        if request_id:
            log_data["request_id"] = request_id

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        if hasattr(record, 'extra_fields'):
            log_data.update(record.extra_fields)

        return json.dumps(log_data, default=str)


def sanitize_for_logging(data: Dict[str, Any], sensitive_fields: List[str] = None) -> Dict[str, Any]:
    """
    Sanitize data for logging by masking sensitive fields.

    Args:
        data: The data to sanitize
        sensitive_fields: List of field names to mask

    Returns:
        Sanitized copy of the data
    """
    if sensitive_fields is None:
        sensitive_fields = SENSITIVE_FIELDS

    result = {}
    for key, value in data.items():
        if key in sensitive_fields:
            if isinstance(value, str) and len(value) > 8:
                result[key] = value[:4] + "..." + value[-4:]
            else:
                result[key] = "[REDACTED]"
        elif isinstance(value, dict):
            result[key] = sanitize_for_logging(value, sensitive_fields)
        elif isinstance(value, list):
            result[key] = [
                sanitize_for_logging(item, sensitive_fields) if isinstance(item, dict) else item
                for item in value
            ]
        else:
            result[key] = value

    return result


class AuditLogger:
    """
    Specialized logger for audit events.

    Provides methods for logging lock lifecycle transitions,
    rejected operations, and administrative actions.
    """

    def __init__(self, name: str = "timelock.audit"):
        self._logger = logging.getLogger(name)

    def _log(self, level: int, event_type: str, **kwargs) -> None:
        """Internal logging method with extra fields."""
        extra = {
            "event_type": event_type,
            "request_id": request_id_var.get(),
            **sanitize_for_logging(kwargs)
        }

        record = self._logger.makeRecord(
            self._logger.name,
            level,
            "",
            0,
            f"{event_type}: {kwargs.get('message', '')}",
            (),
            None
        )
        record.extra_fields = extra
        self._logger.handle(record)

    def lock_created(
        self,
        account: str,
        lock_index: int,
        amount: int,
        certificate_id: Optional[int] = None
    ) -> None:
        self._log(
            logging.INFO,
            "LOCK_CREATED",
            account=account,
            lock_index=lock_index,
            amount=amount,
            certificate_id=certificate_id,
            message=f"Locked {amount} for {account} at index {lock_index}"
        )

    def lock_released(self, account: str, lock_index: int, amount: int) -> None:
        self._log(
            logging.INFO,
            "LOCK_RELEASED",
            account=account,
            lock_index=lock_index,
            amount=amount,
            message=f"Released {amount} to {account} from index {lock_index}"
        )

    def operation_rejected(
        self,
        operation: str,
        account: Optional[str],
        code: str,
        reason: str
    ) -> None:
        self._log(
            logging.WARNING,
            "OPERATION_REJECTED",
            operation=operation,
            account=account,
            code=code,
            reason=reason,
            message=f"{operation} rejected: {code}"
        )

    def role_changed(self, caller: str, role: str, account: str, granted: bool) -> None:
        self._log(
            logging.INFO,
            "ROLE_CHANGED",
            caller=caller,
            role=role,
            account=account,
            granted=granted,
            message=f"{role} {'granted to' if granted else 'revoked from'} {account}"
        )

    def pause_changed(self, caller: str, paused: bool) -> None:
        self._log(
            logging.WARNING if paused else logging.INFO,
            "PAUSE_CHANGED",
            caller=caller,
            paused=paused,
            message="Service paused" if paused else "Service unpaused"
        )

    def early_withdrawal_changed(self, caller: str, account: str, lock_index: int, allowed: bool) -> None:
        self._log(
            logging.INFO,
            "EARLY_WITHDRAWAL_CHANGED",
            caller=caller,
            account=account,
            lock_index=lock_index,
            allowed=allowed,
            message=f"Early withdrawal {'allowed' if allowed else 'revoked'} for {account}#{lock_index}"
        )

    def security_event(
        self,
        event: str,
        severity: str = "medium",
        **details
    ) -> None:
        """Log a security-relevant event."""
        level = {
            "low": logging.INFO,
            "medium": logging.WARNING,
            "high": logging.ERROR,
            "critical": logging.CRITICAL
        }.get(severity, logging.WARNING)

        self._log(
            level,
            "SECURITY_EVENT",
            security_event=event,
            severity=severity,
            **details,
            message=f"Security event: {event}"
        )


def configure_logging(
    level: str = "INFO",
    json_format: bool = True,
    log_file: Optional[str] = None
) -> None:
    """
    Configure logging for the application.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_format: Use JSON formatting (recommended for production)
        log_file: Optional file path for log output
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level.upper()))

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    if json_format:
        formatter = StructuredFormatter()
    else:
        formatter = logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
        )

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)


def set_request_id(request_id: Optional[str] = None) -> str:
    """
    Set the request ID for the current context.

    Args:
        request_id: Request ID to set, or None to generate one

    Returns:
        The request ID that was set
    """
    if request_id is None:
        request_id = str(uuid.uuid4())
    request_id_var.set(request_id)
    return request_id


def get_request_id() -> str:
    """Get the current request ID."""
    return request_id_var.get()


# Global audit logger instance
audit_log = AuditLogger()
