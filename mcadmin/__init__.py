"""
MC-Admin: Memcached Management Service

A small management façade over a single memcached server, built with
Python asyncio and speaking the memcached text protocol over raw TCP.
"""

__version__ = "1.0.0"
