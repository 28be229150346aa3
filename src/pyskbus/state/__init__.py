"""State layer.

In-memory collaborators of the subscription manager: the per-key stream
bundle, the cache of most recent values used for replay, and the full model
of current values per entity used for position lookups.
"""
