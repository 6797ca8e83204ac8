"""histvault core: models, services, data access and ambient infrastructure."""
