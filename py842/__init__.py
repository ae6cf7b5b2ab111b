"""842 bitstream format definitions, big-endian CRC-32 and multithreaded block compression streams."""

__version__ = "0.1.0"