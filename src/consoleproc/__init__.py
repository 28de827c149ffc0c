"""consoleproc — supervisor for long-lived interactive child processes."""

__version__ = "0.1.0"
