"""Terraform CLI wrapper."""
