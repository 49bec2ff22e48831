"""
ExHentai Harvester – mirror gallery images to a third-party image host.

Supports:
  • Logging in with credentials or bootstrapping from a raw cookie
  • Searching the gallery listing (one or many pages)
  • Resolving a gallery's metadata and paginated image pages
  • Re-uploading images to Telegraph or MinIO/S3
  • Skipping already-hosted images via a persistent URL cache
"""
