"""Collaborator adapters: encryption, wallet key, blob storage and attestation.

Modules:
    crypto      - AES-256-GCM envelope, key derivation, content hashing
    wallet      - KeyProvider capability (static, settings-backed)
    api         - Shared httpx plumbing for the Amach backend
    storage     - StorageClient ABC and the /api/storj HTTP backend
    r2          - Cloudflare R2 StorageClient (boto3)
    attestation - AttestationClient ABC and the HTTP backend
"""
