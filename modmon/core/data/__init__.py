"""Static data shipped with the package (remediation catalog)."""
