"""
Queue-driven, depth-bounded website crawler
"""
__version__ = "0.1.0"
