"""ID Generation Utilities"""
import uuid
from typing import Optional

from .time import utc_now


def generate_id(prefix: Optional[str] = None) -> str:
    """
    Generate a unique ID with optional prefix

    Args:
        prefix: Optional prefix for the ID (e.g., 'INS', 'HIS')

    Returns:
        Unique ID string

    Examples:
        >>> generate_id('INS')
        'INS-a1b2c3d4e5f6'
        >>> generate_id()
        'a1b2c3d4e5f6'
    """
    unique_part = uuid.uuid4().hex[:12]

    if prefix:
        return f"{prefix}-{unique_part}"
    return unique_part


def generate_instance_id() -> str:
    """Generate form instance ID"""
    return generate_id("INS")


def generate_history_id() -> str:
    """Generate approval history record ID"""
    return generate_id("HIS")


def generate_audit_log_id() -> str:
    """Generate audit log entry ID"""
    return generate_id("AUD")


def generate_application_no(date_str: str, existing_today: int) -> str:
    """
    Build an application number for the given day

    Format is YYYYMMDD-NNN where NNN is the day's running serial.
    """
    return f"{date_str}-{existing_today + 1:03d}"


def generate_correlation_id() -> str:
    """
    Generate a correlation ID for request tracing

    Returns:
        Correlation ID string with timestamp prefix
    """
    timestamp = utc_now().strftime("%Y%m%d%H%M%S")
    unique_part = uuid.uuid4().hex[:8]
    return f"COR-{timestamp}-{unique_part}"
