"""Spatial awareness, navigation and goal tracking for a Minecraft agent."""
