"""Terraform Lifecycle Manager - remote-state bootstrap, deploy and teardown for Terraform stacks on AWS."""

__version__ = "0.4.0"
