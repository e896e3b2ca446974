"""threadfeed application framework: logging."""
