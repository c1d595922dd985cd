"""Connectivity and latency benchmark for blockchain data endpoints."""
