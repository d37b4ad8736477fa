"""Meme Engine: composites remote video, music and overlay assets into one deliverable."""

__version__ = "0.1.0"
