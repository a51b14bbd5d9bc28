"""
C++ wrapper generator for finch packages.

Turns the class/operation IR produced by the finch frontend into an idiomatic
C++ header/implementation pair that marshals values across the C ABI.
"""

__version__ = "0.1.0"
