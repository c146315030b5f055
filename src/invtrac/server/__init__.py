"""InvTrac server: accounts, tokens and per-user inventory storage."""
