"""Provider calls: text completion, regional features, elevation."""
