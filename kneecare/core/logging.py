"""
Logging configuration for the KneeCare backend.
"""
import logging
import logging.handlers
from pathlib import Path
from typing import Any, Dict, Optional
from kneecare.core.config import Settings


def _rotating_handler(path: Path, settings: Settings, fmt: str) -> logging.Handler:
    path.parent.mkdir(parents=True, exist_ok=True)
    handler = logging.handlers.RotatingFileHandler(
        filename=path,
        maxBytes=settings.LOG_MAX_SIZE,
        backupCount=settings.LOG_BACKUP_COUNT,
        encoding='utf-8'
    )
    handler.setFormatter(logging.Formatter(fmt=fmt, datefmt='%Y-%m-%d %H:%M:%S'))
    return handler


def setup_logging(settings: Settings) -> None:
    """Configure application logging."""
    log_file = Path(settings.LOG_FILE)

    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, settings.LOG_LEVEL.upper()))
    root_logger.handlers.clear()

    formatter = logging.Formatter(
        fmt='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )

    # File handler with rotation
    file_handler = _rotating_handler(log_file, settings, '%(asctime)s - %(name)s - %(levelname)s - %(message)s')
    file_handler.setLevel(logging.INFO)
    root_logger.addHandler(file_handler)

    # Console handler
    console_handler = logging.StreamHandler()
    console_handler.setLevel(logging.DEBUG if settings.DEBUG else logging.INFO)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    setup_specific_loggers(settings)

    # Dedicated sinks for security and audit-fallback events
    log_dir = log_file.parent
    security_logger.attach(_rotating_handler(
        log_dir / "security" / "security.log", settings,
        '%(asctime)s - SECURITY - %(levelname)s - %(message)s'
    ))
    audit_logger.attach(_rotating_handler(
        log_dir / "audit" / "audit.log", settings,
        '%(asctime)s - AUDIT - %(levelname)s - %(message)s'
    ))

    logging.info("Logging configuration completed")
    logging.info(f"Log level: {settings.LOG_LEVEL}")
    logging.info(f"Log file: {settings.LOG_FILE}")


def setup_specific_loggers(settings: Settings) -> None:
    """Configure specific module loggers."""
    sqlalchemy_logger = logging.getLogger('sqlalchemy')
    sqlalchemy_logger.setLevel(logging.INFO if settings.DEBUG else logging.WARNING)

    for name in ('fastapi', 'uvicorn', 'celery', 'kneecare', 'kneecare.api'):
        logging.getLogger(name).setLevel(logging.INFO)


class SecurityLogger:
    """Specialized logger for security events."""

    def __init__(self):
        self.logger = logging.getLogger('kneecare.security')
        self._handler: Optional[logging.Handler] = None

    def attach(self, handler: logging.Handler) -> None:
        if self._handler is not None:
            self.logger.removeHandler(self._handler)
            self._handler.close()
        self._handler = handler
        self.logger.addHandler(handler)

    def log_login_attempt(self, email: str, ip_address: Optional[str], success: bool):
        """Log login attempt."""
        status = "SUCCESS" if success else "FAILED"
        self.logger.info(f"LOGIN_ATTEMPT - {status} - {email} - {ip_address}")

    def log_registration_rejected(self, email: str, ip_address: Optional[str], reason: str):
        self.logger.warning(f"REGISTRATION_REJECTED - {email} - {ip_address} - {reason}")

    def log_logout(self, user_id: int, ip_address: Optional[str]):
        """Log user logout."""
        self.logger.info(f"LOGOUT - User {user_id} - {ip_address}")

    def log_file_upload(self, user_id: int, filename: str, file_size: int, ip_address: Optional[str]):
        """Log file upload."""
        self.logger.info(f"FILE_UPLOAD - User {user_id} - {filename} - {file_size} bytes - {ip_address}")

    def log_permission_denied(self, user_id: Optional[int], resource: str, reason: str):
        """Log permission denied."""
        self.logger.warning(f"PERMISSION_DENIED - User {user_id} - {resource} - {reason}")

    def log_invalid_token(self, ip_address: Optional[str], reason: str):
        self.logger.warning(f"INVALID_TOKEN - {ip_address} - {reason}")

    def log_rate_limited(self, ip_address: Optional[str], path: str):
        self.logger.warning(f"RATE_LIMITED - {ip_address} - {path}")


class AuditLogger:
    """Local sink for audit entries that could not be written to the database."""

    def __init__(self):
        self.logger = logging.getLogger('kneecare.audit')
        self._handler: Optional[logging.Handler] = None

    def attach(self, handler: logging.Handler) -> None:
        if self._handler is not None:
            self.logger.removeHandler(self._handler)
            self._handler.close()
        self._handler = handler
        self.logger.addHandler(handler)

    def log_append_failure(self, entry: Dict[str, Any], error: Exception):
        """Record an audit entry whose storage failed."""
        self.logger.error(f"APPEND_FAILED - {entry} - {error!r}")

    def log_system_event(self, event_type: str, description: str, details: Dict[str, Any]):
        """Log system events."""
        self.logger.info(f"SYSTEM_EVENT - {event_type} - {description} - {details}")


# Process-wide logger facades
security_logger = SecurityLogger()
audit_logger = AuditLogger()


def get_logger(name: str) -> logging.Logger:
    """Get a logger instance."""
    return logging.getLogger(name)
