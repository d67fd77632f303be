"""
Identifier generation for folders and memorization plans.

Produces collision-resistant identifiers with a degrading fallback chain
so that creating an entity never fails, even when the host cannot supply
strong randomness.
"""

import logging
import os
import random
import time
import uuid
from typing import Callable, Optional

logger = logging.getLogger(__name__)

UuidFactory = Callable[[], uuid.UUID]
ByteSource = Callable[[int], bytes]

# Errors a randomness source raises when the platform cannot serve it
_UNAVAILABLE = (NotImplementedError, OSError)


class IdGenerator:
    """
    Generates identifiers using the strongest available source.

    Sources are tried in order:
    1. ``uuid_factory`` (``uuid.uuid4``) - canonical UUID v4 string
    2. ``byte_source`` (``os.urandom``) - 16 random bytes shaped into a v4 UUID
    3. time-based fallback ``id-<epoch ms>-<random hex>``, unique enough
       within a single session but not collision-proof

    A source is skipped when it is ``None`` or raises ``NotImplementedError``
    or ``OSError``.
    """

    def __init__(
        self,
        uuid_factory: Optional[UuidFactory] = uuid.uuid4,
        byte_source: Optional[ByteSource] = os.urandom,
    ):
        self.uuid_factory = uuid_factory
        self.byte_source = byte_source

    def generate(self) -> str:
        """Return a new identifier; never raises"""
        if self.uuid_factory is not None:
            try:
                return str(self.uuid_factory())
            except _UNAVAILABLE as e:
                logger.debug(f"UUID source unavailable, falling back to random bytes: {e}")

        if self.byte_source is not None:
            try:
                return self.format_uuid4(self.byte_source(16))
            except _UNAVAILABLE as e:
                logger.debug(f"Random byte source unavailable, falling back to time-based id: {e}")

        return self.time_based_id()

    @staticmethod
    def format_uuid4(raw: bytes) -> str:
        """
        Shape 16 random bytes into the canonical 8-4-4-4-12 UUID v4 layout.

        Byte 6 gets version nibble 0100, byte 8 gets variant bits 10.
        """
        if len(raw) != 16:
            raise ValueError(f"Expected 16 random bytes, got {len(raw)}")

        data = bytearray(raw)
        data[6] = (data[6] & 0x0F) | 0x40
        data[8] = (data[8] & 0x3F) | 0x80

        hex_str = data.hex()
        return f"{hex_str[:8]}-{hex_str[8:12]}-{hex_str[12:16]}-{hex_str[16:20]}-{hex_str[20:]}"

    @staticmethod
    def time_based_id() -> str:
        """Last-resort identifier distinguishable within one session"""
        millis = int(time.time() * 1000)
        suffix = format(random.getrandbits(40), '010x')
        return f"id-{millis}-{suffix}"


_default_generator = IdGenerator()


def generate_id() -> str:
    """Generate a new identifier with the default source chain"""
    return _default_generator.generate()
