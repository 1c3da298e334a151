"""HTTP API for the shiftpay engine."""
