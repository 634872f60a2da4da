"""Application services for the pilet release CLI."""
