"""Client side of the Asterisk Gateway Interface (AGI) line protocol.

A session reads the ``agi_*`` environment block, then sends one command at a
time and reads one ``200 result=...`` line per command. ``AgiSession`` covers
classic blocking AGI scripts; ``AgiProtocol`` and ``AsyncAgiSession`` run many
FastAGI sessions on one asyncio event loop.
"""
