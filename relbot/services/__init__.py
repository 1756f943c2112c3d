"""Release services: git host, package index, registry, recipes, changelog."""
