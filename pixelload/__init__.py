"""Load GIF, ICO and CUR images into in-memory surfaces and detect common image formats."""

__version__ = "0.1.0"

__all__ = ["surface", "gif", "ico", "magic", "loader"]