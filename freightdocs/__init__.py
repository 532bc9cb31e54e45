"""CRT and MIC/DTA document numbering for licensed road carriers."""

__version__ = "1.0.0"
