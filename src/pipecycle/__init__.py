"""pipecycle - GStreamer pipeline lifecycle aging controller and supervisor."""

__version__ = "0.1.0"
