"""
Health endpoint and liveness prober for nexusbot.
"""

from nexusbot.health.prober import LivenessProber, ProberConfig
from nexusbot.health.server import HealthServer

__all__ = ["HealthServer", "LivenessProber", "ProberConfig"]
