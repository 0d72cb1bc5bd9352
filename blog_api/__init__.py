"""Blog platform API: view tracking and analytics."""
