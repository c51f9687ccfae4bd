"""Hash-chain ledger: log store, trust anchor, append engine and verifier"""
