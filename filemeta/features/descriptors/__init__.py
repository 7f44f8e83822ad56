"""File descriptor model and the session-wide host index."""
