"""
Helpers for sitecrawl: URL handling, file writes and component wiring
"""
