"""
Codex API

Metadata service for the 10,000-item codex collection: seed pipeline,
asset migration, and owner/price reconciliation jobs.
"""
__version__ = "0.1.0"
