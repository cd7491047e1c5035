"""
Shared utilities: logging and error tracking
"""
