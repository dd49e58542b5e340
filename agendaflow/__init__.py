"""
agendaflow - recurring availability and request lifecycle engine.
"""

__version__ = "0.3.0"
