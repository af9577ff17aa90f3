"""Media upload pipeline for the restaurant site."""
