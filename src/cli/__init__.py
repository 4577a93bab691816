"""fifo command-line interface."""
