"""Data models shared by the engine, runner and user interfaces."""
