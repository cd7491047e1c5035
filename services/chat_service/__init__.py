"""
Chat service - chat collection state, persistence and guest migration.
"""
