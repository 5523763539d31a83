"""Posts: photo, video, article, event and text updates with likes, comments and saves."""
