"""Services package - booking engine and car catalog."""
