"""A small teaching machine: MIPS object-file tools, an interpreter and a simulated disk file system."""

__version__ = "0.1.0"