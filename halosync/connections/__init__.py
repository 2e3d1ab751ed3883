"""HaloPSA connection management."""

from halosync.connections.service import (
    ConnectionTestResult,
    ConnectionView,
    build_client,
    create_connection,
    delete_connection,
    get_active_connection,
    get_connection,
    list_connections,
    set_default_connection,
    test_connection,
    test_credentials,
    update_connection,
)

__all__ = [
    "ConnectionTestResult",
    "ConnectionView",
    "build_client",
    "create_connection",
    "delete_connection",
    "get_active_connection",
    "get_connection",
    "list_connections",
    "set_default_connection",
    "test_connection",
    "test_credentials",
    "update_connection",
]
