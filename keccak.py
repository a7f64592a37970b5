#!/usr/bin/env python3
"""
Python implementation of the Keccak-f[1600] sponge.

Produces 256, 384 and 512-bit digests with either the NIST SHA3 padding
rule or the original (pre-standard) Keccak rule. Input may be fed in any
chunking; the result only depends on the concatenated bytes.
"""

import argparse
import logging
import sys
from copy import deepcopy
from enum import Enum
from functools import reduce
from operator import xor

log = logging.getLogger(__name__)

# --------------------------------------------------------------------
#                          Constants & Helpers
# --------------------------------------------------------------------

LANES = 25
ROUNDS = 24
OUTPUT_BITS = (256, 384, 512)

MASK64 = (1 << 64) - 1

RoundConstants = (
    0x0000000000000001, 0x0000000000008082, 0x800000000000808A, 0x8000000080008000,
    0x000000000000808B, 0x0000000080000001, 0x8000000080008081, 0x8000000000008009,
    0x000000000000008A, 0x0000000000000088, 0x0000000080008009, 0x000000008000000A,
    0x000000008000808B, 0x800000000000008B, 0x8000000000008089, 0x8000000000008003,
    0x8000000000008002, 0x8000000000000080, 0x000000000000800A, 0x800000008000000A,
    0x8000000080008081, 0x8000000000008080, 0x0000000080000001, 0x8000000080008008,
)

# Rho offsets, listed in the order the Pi walk visits the lanes.
RotationConstants = (
    1, 3, 6, 10, 15, 21, 28, 36, 45, 55, 2, 14,
    27, 41, 56, 8, 25, 43, 62, 18, 39, 61, 20, 44,
)

PiLanes = (
    10, 7, 11, 17, 18, 3, 5, 16, 8, 21, 24, 4,
    15, 23, 19, 13, 12, 2, 20, 14, 22, 9, 6, 1,
)

PAD_TERMINATOR = 0x8000000000000000


def rol64(value, left):
    assert 0 < left < 64
    return ((value << left) | (value >> (64 - left))) & MASK64


def bytes2lane(bb):
    return int.from_bytes(bb, "little")


def lanes2bytes(lanes, length):
    """Serialize lanes little-endian, one after another, cut to ``length`` bytes."""
    nlanes = (length + 7) // 8
    out = b"".join(lane.to_bytes(8, "little") for lane in lanes[:nlanes])
    return out[:length]

# --------------------------------------------------------------------
#                          Keccak Permutation
# --------------------------------------------------------------------

def keccak_f(state):
    """Apply the 24-round Keccak-f[1600] permutation to ``state`` in place."""
    assert len(state) == LANES

    for rc in RoundConstants[:ROUNDS]:
        # Theta
        c = [reduce(xor, state[x::5]) for x in range(5)]
        for x in range(5):
            d = c[(x - 1) % 5] ^ rol64(c[(x + 1) % 5], 1)
            for y in range(0, LANES, 5):
                state[y + x] ^= d

        # Rho & Pi
        carry = state[1]
        for lane, rot in zip(PiLanes, RotationConstants):
            carry, state[lane] = state[lane], rol64(carry, rot)

        # Chi
        for y in range(0, LANES, 5):
            row = state[y:y + 5]
            for x in range(5):
                state[y + x] = row[x] ^ ((~row[(x + 1) % 5]) & row[(x + 2) % 5])

        # Iota
        state[0] ^= rc

# --------------------------------------------------------------------
#                                Errors
# --------------------------------------------------------------------

class KeccakError(Exception):
    pass


class InvalidConfiguration(KeccakError, ValueError):
    """Unsupported output width or padding rule."""


class InvalidState(KeccakError, RuntimeError):
    """Sponge used after it was finalized."""

# --------------------------------------------------------------------
#                          Keccak Sponge
# --------------------------------------------------------------------

class PaddingRule(Enum):
    """Domain separation suffix applied at finalization."""

    KECCAK = 0x01
    SHA3 = 0x06

    @classmethod
    def lookup(cls, rule):
        if isinstance(rule, cls):
            return rule
        try:
            return cls[str(rule).upper()]
        except KeyError:
            raise InvalidConfiguration(f"unknown padding rule: {rule!r}") from None


class KeccakSponge:
    """
    Incremental absorb/finalize state machine over one 1600-bit state.

    Input bytes are packed little-endian into 64-bit lanes. A partial lane
    (``saved``, ``byte_index`` bytes filled) is carried between ``absorb``
    calls, and ``word_index`` points at the rate lane the next full lane is
    XORed into. The permutation runs each time the rate is filled, and once
    more in ``finalize``.
    """

    def __init__(self, output_bits=256, padding=PaddingRule.SHA3):
        if type(output_bits) is not int or output_bits not in OUTPUT_BITS:
            raise InvalidConfiguration(
                f"output width must be one of {OUTPUT_BITS}, got {output_bits!r}"
            )
        self.padding = PaddingRule.lookup(padding)
        self.output_bits = output_bits
        self.capacity_words = 2 * output_bits // 64
        self.rate_words = LANES - self.capacity_words

        self.state = [0] * LANES
        self.saved = 0
        self.byte_index = 0
        self.word_index = 0
        self.permutations = 0
        self.finalized = False
        log.debug("new sponge: %d bits, %s padding, rate %d lanes",
                  output_bits, self.padding.name, self.rate_words)

    @property
    def digest_size(self):
        return self.output_bits // 8

    @property
    def block_size(self):
        return self.rate_words * 8

    @property
    def lanes(self):
        return tuple(self.state)

    def copy(self):
        return deepcopy(self)

    def _permute(self):
        keccak_f(self.state)
        self.permutations += 1

    def _xor_lane(self, lane):
        self.state[self.word_index] ^= lane
        self.word_index += 1
        if self.word_index == self.rate_words:
            self._permute()
            self.word_index = 0

    def _stash(self, tail):
        for b in tail:
            self.saved |= b << (8 * self.byte_index)
            self.byte_index += 1
        assert self.byte_index < 8

    def absorb(self, data):
        if self.finalized:
            raise InvalidState("cannot absorb into a finalized sponge")
        if isinstance(data, str):
            raise TypeError("Strings must be encoded before hashing")
        data = memoryview(data).cast("B")

        assert self.byte_index < 8
        assert self.word_index < self.rate_words

        old_tail = (8 - self.byte_index) & 7
        if len(data) < old_tail:
            self._stash(data)
            return

        pos = 0
        if old_tail:
            for b in data[:old_tail]:
                self.saved |= b << (8 * self.byte_index)
                self.byte_index += 1
            assert self.byte_index == 8
            self._xor_lane(self.saved)
            self.saved = 0
            self.byte_index = 0
            pos = old_tail

        end = pos + (len(data) - pos) // 8 * 8
        for i in range(pos, end, 8):
            self._xor_lane(bytes2lane(data[i:i + 8]))

        self._stash(data[end:])

    def finalize(self):
        """Pad, run the last permutation and return the digest bytes."""
        if self.finalized:
            raise InvalidState("sponge already finalized")

        t = self.padding.value << (8 * self.byte_index)
        # Both XORs may land on the same lane; they must compose.
        self.state[self.word_index] ^= self.saved ^ t
        self.state[self.rate_words - 1] ^= PAD_TERMINATOR
        self._permute()
        self.finalized = True
        log.debug("finalized %d-bit %s sponge after %d permutations",
                  self.output_bits, self.padding.name, self.permutations)
        return lanes2bytes(self.state, self.digest_size)


def new(output_bits=256, padding=PaddingRule.SHA3):
    return KeccakSponge(output_bits, padding)

# --------------------------------------------------------------------
#                          Hash Objects
# --------------------------------------------------------------------

class KeccakHash:
    """hashlib-style wrapper; ``digest()`` can be called repeatedly."""

    def __init__(self, output_bits=256, padding=PaddingRule.SHA3, data=b""):
        self.sponge = KeccakSponge(output_bits, padding)
        self.digest_size = self.sponge.digest_size
        self.block_size = self.sponge.block_size
        if data:
            self.update(data)

    @property
    def name(self) -> str:
        prefix = "sha3" if self.sponge.padding is PaddingRule.SHA3 else "keccak"
        return f"{prefix}_{self.sponge.output_bits}"

    def update(self, data: bytes):
        self.sponge.absorb(data)

    def digest(self) -> bytes:
        final = self.sponge.copy()
        return final.finalize()

    def hexdigest(self) -> str:
        return self.digest().hex()

    def copy(self):
        return deepcopy(self)


def sha3_256(data=b""):
    return KeccakHash(256, PaddingRule.SHA3, data)


def sha3_384(data=b""):
    return KeccakHash(384, PaddingRule.SHA3, data)


def sha3_512(data=b""):
    return KeccakHash(512, PaddingRule.SHA3, data)


def keccak_256(data=b""):
    return KeccakHash(256, PaddingRule.KECCAK, data)


def keccak_384(data=b""):
    return KeccakHash(384, PaddingRule.KECCAK, data)


def keccak_512(data=b""):
    return KeccakHash(512, PaddingRule.KECCAK, data)

# --------------------------------------------------------------------
#                          Single-shot Helpers
# --------------------------------------------------------------------

def hash_buffer(data, output_bits=256, padding=PaddingRule.SHA3):
    sponge = KeccakSponge(output_bits, padding)
    sponge.absorb(data)
    return sponge.finalize()


def keccak256(data: bytes) -> bytes:
    return hash_buffer(data, 256, PaddingRule.KECCAK)


def keccak256_hex(data: bytes) -> str:
    return keccak256(data).hex()

# --------------------------------------------------------------------
#                                Main
# --------------------------------------------------------------------

SelfTestVectors = (
    (256, PaddingRule.SHA3, b"",
     "a7ffc6f8bf1ed76651c14756a061d662f580ff4de43b49fa82d80a4b80f8434a"),
    (256, PaddingRule.SHA3, b"abc",
     "3a985da74fe225b2045c172d6bd390bd855f086e3e9d525b46bfe24511431532"),
    (256, PaddingRule.KECCAK, b"abc",
     "4e03657aea45a94fc7d47ba826c8d667c0d1e6e33a64a036ec44f58fa12d6c45"),
    (384, PaddingRule.SHA3, b"\xa3" * 200,
     "1881de2ca7e41ef95dc4732b8f5f002b189cc1e42b74168ed1732649ce1dbcdd"
     "76197a31fd55ee989f2d7050dd473e8f"),
    (512, PaddingRule.SHA3, b"\xa3" * 200,
     "e76dfad22084a8b1467fcf2ffa58361bec7628edf5f3fdc0e4805dc48caeeca8"
     "1b7c13c30adf52a3659584739a2df46be589c51ca1a4a8416df6545a1ce8ba00"),
)

READ_CHUNK = 1 << 16


def run_self_test():
    for bits, rule, msg, expected in SelfTestVectors:
        got = hash_buffer(msg, bits, rule).hex()
        if got != expected:
            raise RuntimeError(
                f"self-test failed for {rule.name}-{bits} {msg[:8]!r}: {got} != {expected}"
            )


def build_parser():
    parser = argparse.ArgumentParser(description="Keccak / SHA3 digest")
    parser.add_argument("-b", "--bits", type=int, choices=OUTPUT_BITS, default=256)
    parser.add_argument("--keccak", action="store_true",
                        help="use the original Keccak padding instead of SHA3")
    parser.add_argument("-m", "--message", type=str, help="message to hash")
    parser.add_argument("-f", "--file", type=str, help="file path to hash")
    parser.add_argument("--self-test", action="store_true")
    parser.add_argument("-v", "--verbose", action="store_true")
    return parser


def main(argv=None):
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    if args.self_test:
        run_self_test()
        print("ok")
        return 0

    rule = PaddingRule.KECCAK if args.keccak else PaddingRule.SHA3
    h = KeccakHash(args.bits, rule)
    if args.file:
        with open(args.file, "rb") as f:
            for chunk in iter(lambda: f.read(READ_CHUNK), b""):
                h.update(chunk)
    elif args.message is not None:
        h.update(args.message.encode())
    else:
        h.update(sys.stdin.buffer.read())

    print(h.hexdigest())
    return 0


if __name__ == "__main__":
    sys.exit(main())
