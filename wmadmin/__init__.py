"""
WMAdmin — Admin Front End for WireMock
======================================

Pieces:
  • Supervisor – runs an embedded WireMock standalone worker in the background
  • Forwarder  – byte-transparent relay to the WireMock Admin API
  • Server     – Flask routes exposing journal / mapping operations

Cross-platform: Linux · macOS · Windows
"""

__version__ = "1.0.0"
__app_name__ = "WMAdmin"
