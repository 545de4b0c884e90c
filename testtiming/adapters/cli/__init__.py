"""Command-line output for timing samples."""
