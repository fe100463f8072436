"""
Backend package for the board API.

This package provides a FastAPI application with repository and media
storage abstractions so notes and posts can live in memory, in a JSON
file, or in a SQL database, with media inline or in object storage.
"""
