"""Example mechanisms and scenes."""
