"""
AIOCENSOR console client.

Session lifecycle, authenticated transport and route guarding for the
AIOCENSOR administration console.
"""

__version__ = "1.0.0"
