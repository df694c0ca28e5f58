"""HTTP query layer."""
