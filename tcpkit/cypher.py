"""Byte-rotation cipher used between the proxy's local and server halves."""

from __future__ import annotations

_BYTE_VALUES = 256


class Cypher:
    """Substitution cipher mapping each byte ``b`` to ``(b + shift_steps) % 256``."""

    def __init__(self, shift_steps: int = 0) -> None:
        if not 0 <= shift_steps <= _BYTE_VALUES:
            raise ValueError(
                f"shift_steps must be between 0 and {_BYTE_VALUES}, got {shift_steps}"
            )
        self.shift_steps = shift_steps
        rotated = bytes(range(_BYTE_VALUES))
        rotated = rotated[shift_steps:] + rotated[:shift_steps]
        self._encrypt_table = rotated
        decrypt = bytearray(_BYTE_VALUES)
        for plain, cipher in enumerate(rotated):
            decrypt[cipher] = plain
        self._decrypt_table = bytes(decrypt)

    def encrypt(self, data) -> bytes:
        """Return the encrypted form of ``data``."""
        return bytes(data).translate(self._encrypt_table)

    def decrypt(self, data) -> bytes:
        """Return the decrypted form of ``data``."""
        return bytes(data).translate(self._decrypt_table)