"""Simple File Transfer (SFT)

One file per TCP connection, framed as: name length, name, content length,
content. The receiver acknowledges each length field with a one-byte status
and refuses lengths above its limits before reading or allocating anything.

Layout:
- framing and status codecs in ``codec``
- sender / receiver pipelines as separate units
- per-connection throughput measurement sampled by a background reporter
"""

__all__ = []
