"""Data models, bucket identity and file loaders."""
