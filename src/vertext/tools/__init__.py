"""Tool framework: protocol, argument coercion, registry, built-in tools."""
