"""
platestream CLI - Command-line interface for the streaming service.

This package exposes the service's REST endpoints from the shell without
writing HTTP requests by hand.

Usage:
    platestream health
    platestream test-connection
    platestream sessions
    platestream session-info <session_id>
    platestream close-session <session_id>
    platestream download <session_id> --format csv
"""

__version__ = "0.1.0"
