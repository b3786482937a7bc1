"""Mirror a FLAC library into a compressed copy with the same layout."""

__version__ = "0.1.0"
