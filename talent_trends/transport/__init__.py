"""
Outbound delivery of pipeline records.

Submodules:
  sse  — Server-Sent Events encoding, heartbeats and completion marker
"""
