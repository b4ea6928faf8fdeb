"""Small helpers shared by the engine and user interfaces."""
