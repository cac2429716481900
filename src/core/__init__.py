"""Shared infrastructure for kafka-cli: errors, logging and retry."""
