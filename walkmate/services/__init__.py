"""Service layer: session, catalog, walk workflow, dogs, profiles and chat."""
