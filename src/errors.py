"""
Exceptions raised by the PAN-OS device client.
"""


class TransportError(RuntimeError):
    """A device call failed outright (connection, HTTP or authentication)."""


class CommandError(TransportError):
    """The device answered but rejected the command (status="error")."""

    def __init__(self, command: str, message: str):
        super().__init__(f"{command}: {message}")
        self.command = command
        self.message = message
