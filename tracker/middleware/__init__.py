"""Request middleware: structured logging and timing."""
