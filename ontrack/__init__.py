"""OnTrack Connect client-side fetch layer."""

__version__ = "1.0.0"
