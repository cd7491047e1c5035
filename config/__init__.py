"""
Application configuration package
"""
