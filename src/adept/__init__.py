"""Adept teaching assistant: lesson plans synchronized with Google Calendar."""
