"""Orchestration runtime: workflow engine, metrics, logging and the CLI."""
