"""takt: text messages in, tasks and events out, plus a daily digest."""

__version__ = "0.1.0"
