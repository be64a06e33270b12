"""TeamBeat - real-time team retrospective boards."""

__version__ = "0.1.0"
