"""ReliefHub incident-response backend."""
