"""Provably-fair plinko outcome and payout engine."""
