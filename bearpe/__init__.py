"""Parser for MS-DOS (MZ) executables, byte buffers and an interactive inspection shell."""

__version__ = "0.1.0"