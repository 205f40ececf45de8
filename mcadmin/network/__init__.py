"""Network module for MC-Admin."""

from .handlers import RequestHandler
from .tcp_server import AdminServer

__all__ = ["AdminServer", "RequestHandler"]
