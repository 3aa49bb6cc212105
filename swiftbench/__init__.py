"""
Swift object-storage client and benchmark harness.
"""

__version__ = "0.1.0"
