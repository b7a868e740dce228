"""Code shared by the API service and the worker."""
