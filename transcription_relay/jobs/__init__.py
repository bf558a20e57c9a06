"""Job records and object-key layout."""
