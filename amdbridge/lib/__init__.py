"""Shared plumbing: config, data model, wire codec, resolvers."""
