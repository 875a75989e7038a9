"""State layer.

Holds the durable store and the typed events that mutate it.
"""
