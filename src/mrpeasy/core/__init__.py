"""Transport-independent pieces: requests, cursors, decode targets, errors."""
