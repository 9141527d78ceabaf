"""
Chain constants for zipwallet.

The wallet targets Bitcoin SV: legacy P2PKH outputs and a signature hash
that commits to the spent value via the fork-id flag.
"""

from __future__ import annotations

SATOSHIS_PER_COIN = 100_000_000

# Signature hash flags
SIGHASH_ALL = 0x01
SIGHASH_FORKID = 0x40
SIGHASH_ALL_FORKID = SIGHASH_ALL | SIGHASH_FORKID  # 0x41

# Transaction defaults
TX_VERSION = 1
TX_LOCKTIME = 0
SEQUENCE_FINAL = 0xFFFFFFFF

# BSV relays outputs down to a single satoshi
DEFAULT_DUST_THRESHOLD = 1  # satoshis

# Default relay fee rate
DEFAULT_FEE_RATE_SAT_PER_KB = 500

# Size model for fee estimation (P2PKH, compressed keys, low-S DER)
TX_OVERHEAD_SIZE = 10
P2PKH_INPUT_SIZE = 148
P2PKH_OUTPUT_SIZE = 34

# Base58Check version bytes for P2PKH addresses
P2PKH_VERSION_BYTES = {
    "mainnet": 0x00,
    "testnet": 0x6F,
    "regtest": 0x6F,
}

# BIP44 coin types (236 = Bitcoin SV)
COIN_TYPES = {
    "mainnet": 236,
    "testnet": 1,
    "regtest": 1,
}

# Highest non-hardened child index
MAX_CHILD_INDEX = 0x7FFFFFFF
HARDENED_OFFSET = 0x80000000

# Owner of addresses handed out without an explicit user
DEFAULT_USER_ID = "default"
