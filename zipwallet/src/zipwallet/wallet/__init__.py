"""
Wallet core: derivation, UTXO store, transaction building and signing, aliases.
"""
