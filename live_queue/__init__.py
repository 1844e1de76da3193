"""
Live Queue

A small live-state broadcaster: one writer updates a ticket number/counter pair,
and every connected viewer sees the new value in real time over Server-Sent Events.
"""

__version__ = "0.1.0"
__author__ = "Live Queue Team"
