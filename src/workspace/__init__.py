"""Workspace module for the extension recommender.

This module describes the opened workspace:
- Folder set tracking with change notifications
- Resource reachability checks
- Privacy-preserving fingerprints of version-control remotes
"""
