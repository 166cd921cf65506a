"""Local Terraform state hygiene."""
