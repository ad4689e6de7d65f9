"""Command parsing, kinematics and trajectory planning for a drumming robot."""

__version__ = "0.1.0"