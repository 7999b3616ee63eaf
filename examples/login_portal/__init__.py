"""Login Portal example: OIDC login backend built on signet."""
