"""Remote-state bucket bootstrap.

Classes:
    StateBucketProvisioner: Create, configure, describe and destroy the state bucket
    MetadataStore: Read and write the KEY=value backend metadata file
"""

from __future__ import annotations

__all__ = [
    "StateBucketProvisioner",
    "MetadataStore",
]
