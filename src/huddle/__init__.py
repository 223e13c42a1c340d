"""
huddle -- lead agent + specialist consultation chat orchestration.

A lead agent optionally consults a bounded set of specialist agents,
then streams one synthesized answer to the client as Server-Sent Events.
"""

__version__ = "0.1.0"
