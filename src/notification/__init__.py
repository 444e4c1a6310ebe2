"""Notification module for the extension recommender.

This module decides whether to surface an important executable tip:
- Installed, ignored and disallowed extensions are filtered out
- At most one extension is offered per cycle
- "Don't show again" and "ignore all" decisions persist per workspace
"""
