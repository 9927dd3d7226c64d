"""Application layer: request orchestration, artifact serving and background workers."""
