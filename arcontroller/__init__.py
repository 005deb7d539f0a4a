"""Runner deployment reconciliation, schedule matching, label hashing, volume cleanup, transport instrumentation and release signing."""

__version__ = "0.1.0"