"""Progress tracking and learning-history backend."""
