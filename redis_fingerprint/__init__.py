"""
Redis Fingerprint

Writes a deterministic, order-independent fingerprint of every key in a
Redis store to a log file, so two store copies can be compared line by line.
"""

__version__ = "0.1.0"
