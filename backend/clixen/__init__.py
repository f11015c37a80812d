"""Clixen backend: thin glue between Supabase, n8n and OpenAI."""

__version__ = "1.0.0"
