"""Host module for the extension recommender.

This module holds the narrow collaborator interfaces the recommender talks to
and small reference implementations used by the CLI and the tests:
- Storage, telemetry and notification protocols
- Lifecycle phases and workspace state
- Event emitters returning disposable subscriptions
"""
