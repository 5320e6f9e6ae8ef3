"""Outbound HTTP: transport builder, request relay, uploader and downloader."""
