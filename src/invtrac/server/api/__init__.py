"""InvTrac REST API routes."""
