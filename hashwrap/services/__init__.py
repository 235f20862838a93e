"""HTTP clients for the services an envelope is assembled from:

- an indexer (WhatsOnChain) for raw transactions and Merkle proofs
- a transaction processor (mAPI) for signed status of unconfirmed transactions
"""
