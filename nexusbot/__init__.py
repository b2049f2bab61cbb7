"""
nexusbot - always-on messaging bot connection core.

Keeps one authenticated session with a messaging network alive across
disconnects, persists its credentials, and routes inbound messages to a
pluggable handler.
"""

__version__ = "1.0.0"
