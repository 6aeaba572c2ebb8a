"""
Core application components.
"""
from .state import OrchestratorState
from .connection import ConnectionManager
from .single_flight import SingleFlight

__all__ = ['OrchestratorState', 'ConnectionManager', 'SingleFlight']
