"""
platestream_control - Operator control for the streaming client

Bounded Context: Interactive command-and-control plus status mirroring
Responsibilities:
  - Command registration and validation (console commands)
  - Command execution delegation
  - MQTT status mirror of the session state

Architecture:
  - CommandRegistry: Explicit registration pattern
  - StatusPublisher: paho-mqtt client publishing retained status (QoS 1)

Design Philosophy:
  - Explicit registration (fail-fast, no runtime surprises)
  - Clear error messages (lists available commands on error)
  - Coordinator passed in explicitly, never looked up globally
"""

from .registry import CommandRegistry, CommandNotAvailableError, parse_command_line
from .status import StatusPublisher, format_status

__all__ = [
    "CommandRegistry",
    "CommandNotAvailableError",
    "parse_command_line",
    "StatusPublisher",
    "format_status",
]
