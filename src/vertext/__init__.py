"""vertext: on-device assistant backend for a messaging app."""

__version__ = "0.3.0"
