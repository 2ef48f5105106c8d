"""ZeroMQ implementations of the backend transport."""
