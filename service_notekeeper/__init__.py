"""
Notekeeper service.
"""
