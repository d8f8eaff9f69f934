"""Pipeline core — discovery, builds, object storage, uploads and indexing."""
