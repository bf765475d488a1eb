"""Terminal rendering of pipeline results, ledgers and the matrix."""
