"""AWS provider access: client, error classification and response normalization."""
