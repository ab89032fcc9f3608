"""Text generation client and response parsing."""
