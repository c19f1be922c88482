"""The shared tile world: one-shot generation plus a read-only store.

Nothing here mutates after boot, so readers never need a lock.
"""
