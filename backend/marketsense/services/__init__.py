"""Third-party service integrations: remote calling, search and scrape providers."""
