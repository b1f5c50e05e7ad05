"""HTTP routes for playback, authoring and health."""
