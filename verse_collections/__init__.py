"""
verse-collections: bookmark folders, pinned verses, last-read positions and
memorization plans for Quran readers.
"""

__version__ = "1.0.0"
