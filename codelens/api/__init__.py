"""
API module for WebSocket and HTTP endpoints.
"""
from .websocket import websocket_endpoint
from .handlers import MessageHandler

__all__ = ['websocket_endpoint', 'MessageHandler']
