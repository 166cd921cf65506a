"""Stack teardown with tag-based fallback.

Classes:
    TeardownWorkflow: State machine driving terraform destroy, state recovery and fallback
    TagBasedCleaner: Deletes every resource carrying the project tag
    ResourceDiscovery: Finds tagged resources independent of Terraform state
    ResourceDeleter: Type-specific delete calls with their pre-steps
    DependencyResolver: Dependency graph construction and deletion ordering
    AuditStorage: Audit log storage and retrieval
    LocalArtifactCleaner: Removes key files and local Terraform artifacts
"""

from __future__ import annotations

__all__ = [
    "TeardownWorkflow",
    "TagBasedCleaner",
    "ResourceDiscovery",
    "ResourceDeleter",
    "DependencyResolver",
    "AuditStorage",
    "LocalArtifactCleaner",
]
