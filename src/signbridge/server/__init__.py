"""HTTP and WebSocket transport for the signer."""
