"""Pure envelope building blocks: data model, proof normalization, attestation
verification, transaction parsing and BEEF encoding. Nothing here does I/O."""
