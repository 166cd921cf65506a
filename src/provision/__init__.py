"""Stack provisioning: bucket bootstrap, terraform init/validate/apply."""

from __future__ import annotations

__all__ = ["ProvisionWorkflow", "ProvisionReport"]
