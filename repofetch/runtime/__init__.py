"""Process runners, cancellation and progress display."""
