"""Structured matrix classes."""
