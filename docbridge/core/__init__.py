"""Core conversion logic for docbridge."""
