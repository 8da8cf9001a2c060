"""Conversa backend application."""
