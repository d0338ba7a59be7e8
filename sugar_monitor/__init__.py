"""Blood Sugar Monitor API."""
