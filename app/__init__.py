"""Playlist Podcast Application

This package provides a FastAPI application that republishes a YouTube
playlist as a podcast feed and serves each episode as cached mp3 audio.

The application consists of:
- A main FastAPI app (main.py)
- The playlist_podcast package with the metadata and audio caches
"""
