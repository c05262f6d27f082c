"""Link storage adapters.

The lifecycle engine depends on ``AbstractLinkStore`` only, so the SQLite
implementation can be replaced without touching the service or API layers.
"""
