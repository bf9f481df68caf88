"""HTTP surface: the request gateway and the SPA routes."""
