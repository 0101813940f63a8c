"""HostKit - persisted code units, global aliases and reversible observers."""

__version__ = "0.1.0"
