"""Infrastructure layer: persistence, transcoding, observability and app lifecycle."""
