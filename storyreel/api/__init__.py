"""StoryReel HTTP API."""
