"""Identity collaborator: token authentication and current-principal lookup."""
