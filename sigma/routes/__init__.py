"""Route modules for Sigma LMS.

This package contains route handlers for:
- api.py: JSON API routes (lesson metadata, listings, cache revalidation, stats)
- pages.py: Server-rendered lesson and chapter pages
"""
