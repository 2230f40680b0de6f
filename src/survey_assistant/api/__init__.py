"""HTTP surface: chat streaming, action confirmation and health endpoints."""
