# spotify_cleanup/utils/__init__.py
"""
Utilities package
Common helpers, logging, and validation functions
"""

from .logger import (
    get_logger,
    configure_from_settings,
    setup_logging,
    OperationLogger,
    create_operation_logger,
    get_current_log_file
)
from .helpers import (
    chunked,
    unique_in_order,
    normalize_match_text,
    format_date_label,
    pluralize,
    truncate_string,
    compute_percent
)
from .validation import (
    extract_playlist_id,
    validate_playlist_reference
)

__all__ = [
    # Logger exports
    'get_logger',
    'configure_from_settings',
    'setup_logging',
    'OperationLogger',
    'create_operation_logger',
    'get_current_log_file',

    # Helper exports
    'chunked',
    'unique_in_order',
    'normalize_match_text',
    'format_date_label',
    'pluralize',
    'truncate_string',
    'compute_percent',

    # Validation exports
    'extract_playlist_id',
    'validate_playlist_reference',
]
