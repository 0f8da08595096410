"""
Learning progress client for the CFA prep platform
"""

__version__ = "1.0.0"
