"""
Security middleware and utilities for the CCTV Dashboard.
Implements security headers and the registry audit log.
"""
import logging
from pathlib import Path

from flask import current_app, has_app_context, has_request_context, request


# ============================================================================
# AUDIT LOGGING
# ============================================================================

_audit_logger = None


def _audit_log_dir() -> Path:
    """AUDIT_LOG_DIR from the app config, else <project>/logs"""
    configured = current_app.config.get('AUDIT_LOG_DIR') if has_app_context() else None
    return Path(configured or Path(__file__).parent.parent / 'logs')


def _get_audit_logger():
    """Get or create the audit logger"""
    global _audit_logger
    if _audit_logger is None:
        _audit_logger = logging.getLogger('cctv.audit')
        _audit_logger.setLevel(logging.INFO)
        _audit_logger.propagate = False
        for handler in list(_audit_logger.handlers):
            _audit_logger.removeHandler(handler)
            handler.close()

        log_dir = _audit_log_dir()
        try:
            log_dir.mkdir(parents=True, exist_ok=True)
            audit_file = log_dir / 'audit.log'
            file_handler = logging.FileHandler(audit_file)
            file_handler.setLevel(logging.INFO)

            # Format: timestamp | event_type | ip | details
            file_handler.setFormatter(logging.Formatter(
                '%(asctime)s | %(message)s',
                datefmt='%Y-%m-%d %H:%M:%S'
            ))
            _audit_logger.addHandler(file_handler)
            print(f"[Security] Audit logging enabled: {audit_file}")
        except OSError as e:
            print(f"[Security] Audit log file unavailable ({e}), console only")

        console_handler = logging.StreamHandler()
        console_handler.setLevel(logging.INFO)
        console_handler.setFormatter(logging.Formatter('[Audit] %(message)s'))
        _audit_logger.addHandler(console_handler)

    return _audit_logger


def audit_log(event_type: str, details: str = '', ip: str = None):
    """Log a registry change or other operator action"""
    if ip is None:
        ip = get_client_ip() if has_request_context() else '-'
    _get_audit_logger().info(f"{event_type} | {ip} | {details}")


def get_client_ip() -> str:
    """Get the client IP address, handling proxies"""
    if request.headers.get('X-Forwarded-For'):
        return request.headers.get('X-Forwarded-For').split(',')[0].strip()
    elif request.headers.get('X-Real-IP'):
        return request.headers.get('X-Real-IP')
    return request.remote_addr or '127.0.0.1'


# ============================================================================
# SECURITY HEADERS
# ============================================================================

def add_security_headers(response):
    """Add security headers to response"""
    # Prevent clickjacking
    response.headers['X-Frame-Options'] = 'DENY'

    # Prevent MIME type sniffing
    response.headers['X-Content-Type-Options'] = 'nosniff'

    response.headers['Referrer-Policy'] = 'strict-origin-when-cross-origin'
    response.headers['Permissions-Policy'] = 'geolocation=(), microphone=(), camera=()'

    # Content Security Policy
    csp = (
        "default-src 'self'; "
        "img-src 'self' data: blob:; "
        "media-src 'self' blob: https:; "
        "connect-src 'self'; "
        "frame-ancestors 'none'; "
        "base-uri 'self';"
    )
    response.headers['Content-Security-Policy'] = csp

    # Live state must never be cached
    response.headers['Cache-Control'] = 'no-store, no-cache, must-revalidate, private'
    response.headers['Pragma'] = 'no-cache'

    return response
