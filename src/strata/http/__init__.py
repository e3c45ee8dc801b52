"""HTTP primitives: immutable request, chainable response, headers, cookies."""
