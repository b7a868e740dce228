"""Database models, connection handling and stores."""
