"""Infrastructure adapters: database and supplier API."""
