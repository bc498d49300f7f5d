"""
TraceLink

Client-side bridge between a virtual-prototype co-simulation backend and a
trace viewer: one WebSocket connection, binary transaction decoding, and
control message routing onto Qt signals.
"""

__version__ = "1.0.0"
