"""Domain models, storage backends and the notification pipeline."""
