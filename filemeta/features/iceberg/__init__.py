"""File metadata loading for snapshot tables whose files come from manifests."""
