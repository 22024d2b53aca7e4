"""Server connection seam.

The session only talks to `MessagingClient`; `RedisMessagingClient` is the
implementation used in production and tests.
"""
